"""Round State — in-memory model of the round registry and replay guard.

Invariants:
    - A Round's contributions are append-only while OPEN and frozen once settlement begins
    - winner and payout_reference are write-once (set only on completion)
    - ReplayGuard holds at most `capacity` references, evicting oldest-first
    - RoundRegistry.history is most-recent-first and never exceeds history_capacity

Design Decisions:
    - Pure dataclasses, no IO (ADR: persistence is an explicit side effect in services/)
    - EngineState is the single explicitly owned state object shared by the
      contribution ledger and the round engine — no module-level globals
    - ReplayGuard keeps an insertion-ordered dict: O(1) membership and FIFO eviction
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from burnwheel.core.domain_types import (
    DEFAULT_HISTORY_CAPACITY, DEFAULT_REPLAY_GUARD_CAPACITY, RoundStatus,
)


@dataclass(frozen=True)
class Contribution:
    """One admitted payment credited toward a round's pot."""
    reference: str
    participant: str
    amount: int
    admitted_at: datetime


@dataclass(frozen=True)
class WinnerRecord:
    """Winner of a completed round."""
    participant: str
    contribution_amount: int
    payout_amount: int

    def to_dict(self) -> dict:
        return {
            "participant": self.participant,
            "contribution_amount": self.contribution_amount,
            "payout_amount": self.payout_amount,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WinnerRecord":
        return cls(
            participant=data["participant"],
            contribution_amount=int(data["contribution_amount"]),
            payout_amount=int(data["payout_amount"]),
        )


@dataclass(frozen=True)
class PendingPayout:
    """Payout intent recorded durably before submission, for reconciliation."""
    participant: str
    contribution_amount: int
    payout_amount: int
    buyback_amount: int

    def to_dict(self) -> dict:
        return {
            "participant": self.participant,
            "contribution_amount": self.contribution_amount,
            "payout_amount": self.payout_amount,
            "buyback_amount": self.buyback_amount,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PendingPayout":
        return cls(
            participant=data["participant"],
            contribution_amount=int(data["contribution_amount"]),
            payout_amount=int(data["payout_amount"]),
            buyback_amount=int(data["buyback_amount"]),
        )

    def to_winner(self) -> WinnerRecord:
        return WinnerRecord(
            participant=self.participant,
            contribution_amount=self.contribution_amount,
            payout_amount=self.payout_amount,
        )


@dataclass
class Round:
    """One timed cycle of pooled contributions."""
    id: uuid.UUID
    number: int
    start_time: datetime
    closes_at: datetime
    status: RoundStatus = RoundStatus.OPEN
    contributions: list[Contribution] = field(default_factory=list)
    winner: WinnerRecord | None = None
    payout_reference: str | None = None
    buyback_amount: int = 0
    pending_payout: PendingPayout | None = None
    settlement_started_at: datetime | None = None
    completed_at: datetime | None = None

    # --- Computed properties ---------------------------------------------------

    @property
    def pot_total(self) -> int:
        return sum(c.amount for c in self.contributions)

    @property
    def entries_count(self) -> int:
        return len(self.contributions)

    @property
    def unique_participants(self) -> int:
        return len({c.participant for c in self.contributions})

    @property
    def is_open(self) -> bool:
        return self.status == RoundStatus.OPEN

    def is_due(self, now: datetime) -> bool:
        return self.closes_at <= now

    # --- Mutations (pure, in-memory) ------------------------------------------

    def append(self, contribution: Contribution) -> None:
        """Append a contribution. Only valid while OPEN."""
        if self.status != RoundStatus.OPEN:
            raise ValueError(f"cannot append to a {self.status.value} round")
        self.contributions.append(contribution)

    def complete(
        self, winner: WinnerRecord, payout_reference: str,
        buyback_amount: int, now: datetime,
    ) -> None:
        """Seal the round. winner/payout_reference are write-once."""
        if self.winner is not None or self.payout_reference is not None:
            raise ValueError(f"round {self.id} already has a winner")
        self.winner = winner
        self.payout_reference = payout_reference
        self.buyback_amount = buyback_amount
        self.status = RoundStatus.COMPLETE
        self.pending_payout = None
        self.completed_at = now


def new_round(now: datetime, interval: timedelta, number: int = 1) -> Round:
    """Create a fresh OPEN round closing one interval from now."""
    return Round(
        id=uuid.uuid4(), number=number, start_time=now, closes_at=now + interval,
    )


class ReplayGuard:
    """Bounded, insertion-ordered set of consumed payment references."""

    def __init__(
        self,
        references: list[str] | None = None,
        capacity: int = DEFAULT_REPLAY_GUARD_CAPACITY,
    ):
        self.capacity = capacity
        self._refs: dict[str, None] = {}
        for ref in references or []:
            self.add(ref)

    def __contains__(self, reference: object) -> bool:
        return reference in self._refs

    def __len__(self) -> int:
        return len(self._refs)

    def add(self, reference: str) -> list[str]:
        """Record a reference; return references evicted to stay within capacity."""
        self._refs[reference] = None
        evicted = []
        while len(self._refs) > self.capacity:
            oldest = next(iter(self._refs))
            del self._refs[oldest]
            evicted.append(oldest)
        return evicted

    def references(self) -> list[str]:
        """Oldest-first."""
        return list(self._refs)


@dataclass
class RoundRegistry:
    """Authoritative record of the current round plus bounded history."""
    current: Round
    history: list[Round] = field(default_factory=list)
    history_capacity: int = DEFAULT_HISTORY_CAPACITY

    def overflow_on_archive(self) -> list[Round]:
        """Rounds that archiving the current round would truncate out of history."""
        return self.history[max(self.history_capacity - 1, 0):]

    def archive_current(self, next_round: Round) -> list[Round]:
        """Prepend the completed current round to history and install next_round.

        Returns rounds truncated out of history (to be deleted from storage).
        """
        if self.current.status != RoundStatus.COMPLETE:
            raise ValueError("only a complete round can be archived")
        self.history.insert(0, self.current)
        dropped = self.history[self.history_capacity:]
        self.history = self.history[:self.history_capacity]
        self.current = next_round
        return dropped


@dataclass
class EngineState:
    """Everything the engine mutates: round registry + replay guard."""
    registry: RoundRegistry
    replay_guard: ReplayGuard
