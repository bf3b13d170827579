"""Round Schemas — Pydantic models for the public round, feed and config endpoints.

Invariants:
    - EnterRequest.reference: 1-128 chars, stripped, non-empty
    - EnterRequest.expected_amount: strict positive integer (no floats, no bools)
    - Amounts are integers in the smallest ledger unit

Design Decisions:
    - Response models mirror summarize_round() keys so routes stay one-liners
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, StrictInt, field_validator


class EnterRequest(BaseModel):
    """Admission request — a payment reference plus the amount it claims."""
    reference: str = Field(min_length=1, max_length=128)
    expected_amount: StrictInt = Field(gt=0)

    @field_validator("reference")
    @classmethod
    def strip_reference(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("reference cannot be empty or whitespace")
        return v


class EntryResponse(BaseModel):
    reference: str
    participant: str
    amount: int
    admitted_at: datetime


class WinnerResponse(BaseModel):
    participant: str
    contribution_amount: int
    payout_amount: int


class RoundSummary(BaseModel):
    """Public read model of a round."""
    id: UUID
    number: int
    status: str
    start_time: datetime
    closes_at: datetime
    time_remaining_seconds: int
    pot_amount: int
    entries_count: int
    unique_participants: int
    entries: list[EntryResponse]
    winner: WinnerResponse | None = None
    payout_reference: str | None = None
    buyback_amount: int = 0
    completed_at: datetime | None = None


class CurrentRoundResponse(BaseModel):
    current: RoundSummary


class HistoryResponse(BaseModel):
    rounds: list[RoundSummary]


class ReconcileResponse(BaseModel):
    outcome: str
    current: RoundSummary


class PublicConfig(BaseModel):
    """Configuration the client needs to build a valid contribution."""
    receiving_address: str
    min_participants: int
    round_interval_seconds: int
    payout_share: float
    concentration_cap: float
    burn_mint: str
    buyback_dry_run: bool
