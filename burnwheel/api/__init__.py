"""API Layer — FastAPI routers and global error handlers.

Invariants:
    - Routers are registered explicitly in main.py
    - Every error leaves the API as the same JSON envelope

Design Decisions:
    - Routes are thin: they read the runtime and delegate to services
"""
