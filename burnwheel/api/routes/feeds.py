"""Feed Routes — recent burns and recent payouts, newest first."""

from fastapi import APIRouter, Depends

from burnwheel.schemas.feed import BurnFeedResponse, PayoutFeedResponse
from burnwheel.services.runtime import Runtime, get_runtime

router = APIRouter(prefix="/api/v1/feeds", tags=["feeds"])

DEFAULT_FEED_LIMIT = 20


@router.get("/burns", response_model=BurnFeedResponse)
async def recent_burns(
    limit: int = DEFAULT_FEED_LIMIT, rt: Runtime = Depends(get_runtime),
):
    return {"burns": await rt.burn_feed.recent(max(1, limit))}


@router.get("/payouts", response_model=PayoutFeedResponse)
async def recent_payouts(
    limit: int = DEFAULT_FEED_LIMIT, rt: Runtime = Depends(get_runtime),
):
    return {"payouts": await rt.payout_feed.recent(max(1, limit))}
