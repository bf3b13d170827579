"""Feed Records — display entries for the recent-burns and recent-payouts feeds.

Invariants:
    - Amounts are integers in the smallest unit of their currency
    - to_dict() is JSON-safe (timestamps as ISO strings)
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class BurnRecord:
    """One executed buyback delivered to the burn account."""
    reference: str
    timestamp: datetime
    amount: int
    output_amount: int
    mint: str
    dry_run: bool = False

    def to_dict(self) -> dict:
        return {
            "reference": self.reference,
            "timestamp": self.timestamp.isoformat(),
            "amount": self.amount,
            "output_amount": self.output_amount,
            "mint": self.mint,
            "dry_run": self.dry_run,
        }


@dataclass(frozen=True)
class PayoutRecord:
    """One winner payout."""
    reference: str
    timestamp: datetime
    round_id: str
    round_number: int
    participant: str
    payout_amount: int
    pot_amount: int

    def to_dict(self) -> dict:
        return {
            "reference": self.reference,
            "timestamp": self.timestamp.isoformat(),
            "round_id": self.round_id,
            "round_number": self.round_number,
            "participant": self.participant,
            "payout_amount": self.payout_amount,
            "pot_amount": self.pot_amount,
        }
