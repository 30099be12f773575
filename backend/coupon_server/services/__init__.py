"""Services Layer — redemption engine and cached read services.

Invariants:
    - Services own the critical sections; infrastructure only does IO
    - Routes call services, never the store or caches directly

Design Decisions:
    - One service per concern, dependencies injected by the container
"""
