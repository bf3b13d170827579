"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - RoundId wraps UUID; PaymentReference and Participant wrap str
    - Amounts are integers in the ledger's smallest unit (never floats)
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (ADR: rounds persisted as JSON-friendly rows)
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

RoundId = NewType("RoundId", UUID)
PaymentReference = NewType("PaymentReference", str)
Participant = NewType("Participant", str)


# ─── Value Types ─────────────────────────────────────────────────

Amount = NewType("Amount", int)          # smallest ledger unit, >= 0
Fraction01 = NewType("Fraction01", float)  # 0.0 < f <= 1.0


# ─── Defaults ────────────────────────────────────────────────────

DEFAULT_REPLAY_GUARD_CAPACITY: int = 5000
DEFAULT_HISTORY_CAPACITY: int = 20
DEFAULT_FEED_CAPACITY: int = 50


# ─── Enums ───────────────────────────────────────────────────────

class RoundStatus(str, Enum):
    """Round lifecycle states — maps to DB `status` column."""
    OPEN = "open"
    SETTLING = "settling"
    COMPLETE = "complete"


class SettlementOutcome(str, Enum):
    """What a single tick/settlement attempt did to the current round."""
    IDLE = "idle"                  # not due, or round not open
    BUSY = "busy"                  # another settlement in flight
    DEFERRED_QUORUM = "deferred_quorum"
    DEFERRED_NO_WINNER = "deferred_no_winner"
    DEFERRED_RESERVE = "deferred_reserve"
    DEFERRED_TRANSIENT = "deferred_transient"
    PAYOUT_UNCERTAIN = "payout_uncertain"
    REOPENED = "reopened"          # reconciliation found no payout
    COMPLETED = "completed"
    ROLLED_OVER = "rolled_over"    # stranded complete round archived


class FeedKind(str, Enum):
    """Auxiliary display feeds."""
    BURNS = "burns"
    PAYOUTS = "payouts"
