"""Pydantic Schemas — request/response validation for API endpoints.

Invariants:
    - Schemas validate shape and length at the system boundary
    - Domain rules (empty offer id, unknown token) stay in the services

Design Decisions:
    - Separate from core records: schemas are API contracts, records are persistence
"""
