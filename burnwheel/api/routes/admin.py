"""Admin Routes — operator-triggered payout reconciliation.

Invariants:
    - Every admin route requires X-Admin-Secret matching settings.admin_secret
    - With no admin_secret configured, admin routes are disabled (403)

Design Decisions:
    - hmac.compare_digest for the secret comparison (constant time)
"""

import hmac

from fastapi import APIRouter, Depends, Header

from burnwheel.core.errors import AdminAuthError
from burnwheel.schemas.round import ReconcileResponse
from burnwheel.services.runtime import Runtime, get_runtime

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


def require_admin(
    x_admin_secret: str | None = Header(None),
    rt: Runtime = Depends(get_runtime),
) -> None:
    expected = rt.settings.admin_secret
    if not expected or not x_admin_secret or not hmac.compare_digest(
        x_admin_secret.encode(), expected.encode(),
    ):
        raise AdminAuthError()


@router.post(
    "/rounds/current/reconcile",
    response_model=ReconcileResponse,
    dependencies=[Depends(require_admin)],
)
async def reconcile_current_round(rt: Runtime = Depends(get_runtime)):
    """Resolve a round whose payout outcome is unknown."""
    outcome = await rt.engine.reconcile()
    return {"outcome": outcome.value, "current": rt.engine.current_summary()}
