"""Route Modules — one file per resource.

Invariants:
    - Each module owns an APIRouter with its prefix and tags
    - No settlement or admission logic lives in a route
"""
