"""Feed Schemas — recent burns and recent payouts."""

from datetime import datetime

from pydantic import BaseModel


class BurnEntry(BaseModel):
    reference: str
    timestamp: datetime
    amount: int
    output_amount: int
    mint: str
    dry_run: bool = False


class PayoutEntry(BaseModel):
    reference: str
    timestamp: datetime
    round_id: str
    round_number: int
    participant: str
    payout_amount: int
    pot_amount: int


class BurnFeedResponse(BaseModel):
    burns: list[BurnEntry]


class PayoutFeedResponse(BaseModel):
    payouts: list[PayoutEntry]
