"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Randomness and time are injected (rng, now) so every function is reproducible

Design Decisions:
    - Functional core separated from imperative shell (ADR: settlement rules testable without a ledger)
"""
