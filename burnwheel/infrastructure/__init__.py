"""Infrastructure Layer — database, logging, and clients for external collaborators.

Invariants:
    - Every external call has a bounded timeout
    - Library exceptions are mapped to core/errors.py types at this boundary

Design Decisions:
    - Implements the Protocols in core/repository_protocols.py; core never imports this package
"""
