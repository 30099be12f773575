"""Infrastructure Layer — file persistence, caching and cross-cutting concerns.

Invariants:
    - Infrastructure never imports from services/ or api/
    - All file IO failures mapped to StorageError (core/errors.py)

Design Decisions:
    - Blocking file calls run in worker threads; the event loop only awaits them
"""
