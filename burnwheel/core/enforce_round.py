"""Round Enforcement — pure settlement decisions for the round state machine.

Invariants:
    - evaluate_due is PURE: returns a decision, does NOT mutate the round
    - Quorum counts UNIQUE participants, not entries
    - split_pot conserves value exactly: payout + buyback == pot
    - A reserve shortfall never shrinks the payout; it only defers

Design Decisions:
    - SettlementPolicy is a frozen view of the settings the engine needs, so core
      never imports config (ADR: core has no IO and no environment access)
    - Decimal for the payout share: floor(pot * share) must be exact for large pots
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_FLOOR
from enum import Enum

from burnwheel.core.domain_types import RoundStatus
from burnwheel.core.round_state import Round


DEFAULT_FEE_BUFFER: int = 5000


class DueCheck(str, Enum):
    """Result of comparing the current round against the clock and quorum."""
    NOT_DUE = "not_due"
    NOT_OPEN = "not_open"
    BELOW_QUORUM = "below_quorum"
    READY = "ready"


@dataclass(frozen=True)
class SettlementPolicy:
    """Engine rules derived from configuration."""
    round_interval: timedelta
    min_participants: int
    payout_share: float
    concentration_cap: float
    min_reserve: int = 0
    fee_buffer: int = DEFAULT_FEE_BUFFER
    reserve_retry: timedelta = timedelta(seconds=60)
    max_buyback_per_cycle: int | None = None


def evaluate_due(round_: Round, now: datetime, policy: SettlementPolicy) -> DueCheck:
    """Decide whether the current round should settle now. Pure."""
    if round_.status != RoundStatus.OPEN:
        return DueCheck.NOT_OPEN
    if not round_.is_due(now):
        return DueCheck.NOT_DUE
    if round_.unique_participants < policy.min_participants:
        return DueCheck.BELOW_QUORUM
    return DueCheck.READY


def split_pot(pot: int, payout_share: float) -> tuple[int, int]:
    """Return (payout, buyback) with payout = floor(pot * share)."""
    payout = int(
        (Decimal(pot) * Decimal(str(payout_share))).to_integral_value(
            rounding=ROUND_FLOOR,
        ),
    )
    return payout, pot - payout


def reserve_sufficient(balance: int, payout: int, policy: SettlementPolicy) -> bool:
    """Balance must cover payout plus held reserve and fee buffer."""
    return balance - payout >= policy.min_reserve + policy.fee_buffer
