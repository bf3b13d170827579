"""Health & Readiness Probes — liveness and readiness endpoints.

Invariants:
    - GET /health/ always returns 200 if the process is up (liveness)
    - GET /health/ready returns 503 if the database is unreachable (readiness)
    - Readiness never touches the ledger or the venue (no outbound calls from probes)

Design Decisions:
    - Readiness reports the settlement loop alongside the database: a process whose
      scheduler stopped still serves reads, so it is reported, not failed
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from burnwheel.infrastructure import database
from burnwheel.services.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Liveness probe."""
    return {"status": "healthy", "service": "burnwheel-api", "version": "1.0.0"}


@router.get("/ready")
async def readiness_check(runtime: Runtime = Depends(get_runtime)):
    """Readiness probe: database connectivity plus settlement loop state."""
    manager = database.db_manager
    db_ok = await manager.health_check() if manager else False
    if not db_ok:
        logger.warning("Readiness failed: database unavailable")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database_unavailable"},
        )

    scheduler = runtime.scheduler
    current = runtime.state.registry.current
    return {
        "status": "ready",
        "checks": {
            "database": "healthy",
            "scheduler": "running" if scheduler and scheduler.running else "stopped",
        },
        "round": {"number": current.number, "status": current.status.value},
    }
