"""Pydantic Schemas — request/response contracts for the HTTP surface.

Invariants:
    - Request bodies are validated here before any service call
    - Response models never expose ORM rows or internal state objects

Design Decisions:
    - Separate from models/: schemas are API contracts, models are persistence
"""
