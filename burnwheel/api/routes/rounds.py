"""Round Routes — contribution admission and round read models.

Invariants:
    - POST /enter returns the updated current round or a structured error
      (409 duplicate, 400 rejected, 503 ledger unavailable)
    - History limit is clamped to [1, history_max_limit], never rejected
    - Reads never error on empty state
"""

from fastapi import APIRouter, Depends

from burnwheel.schemas.round import (
    CurrentRoundResponse, EnterRequest, HistoryResponse, PublicConfig,
)
from burnwheel.services.runtime import Runtime, get_runtime

router = APIRouter(prefix="/api/v1", tags=["rounds"])

DEFAULT_HISTORY_LIMIT = 10


@router.post("/rounds/enter", response_model=CurrentRoundResponse)
async def enter_round(body: EnterRequest, rt: Runtime = Depends(get_runtime)):
    """Verify a payment and credit it to the current round."""
    summary = await rt.contributions.admit(body.reference, body.expected_amount)
    return {"current": summary}


@router.get("/rounds/current", response_model=CurrentRoundResponse)
async def current_round(rt: Runtime = Depends(get_runtime)):
    return {"current": rt.engine.current_summary()}


@router.get("/rounds/history", response_model=HistoryResponse)
async def round_history(
    limit: int = DEFAULT_HISTORY_LIMIT, rt: Runtime = Depends(get_runtime),
):
    """Completed rounds, newest first."""
    limit = max(1, min(limit, rt.settings.history_max_limit))
    return {"rounds": rt.engine.history(limit)}


@router.get("/config", response_model=PublicConfig)
async def public_config(rt: Runtime = Depends(get_runtime)):
    s = rt.settings
    return PublicConfig(
        receiving_address=s.receiving_address,
        min_participants=s.min_participants,
        round_interval_seconds=s.round_interval_seconds,
        payout_share=s.payout_share,
        concentration_cap=s.concentration_cap,
        burn_mint=s.burn_mint,
        buyback_dry_run=s.buyback_dry_run,
    )
