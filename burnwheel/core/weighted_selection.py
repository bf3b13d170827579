"""Weighted Selection — pure winner draw with a per-participant concentration cap.

Invariants:
    - Aggregation, capping and totals are deterministic given the input
    - Only the final draw consumes randomness, from the injected rng
    - No participant's effective weight exceeds cap_fraction * total raw pot
    - The returned entry is the winner's FIRST contribution, not an aggregate

Design Decisions:
    - rng is any object with random() -> float in [0, 1) (random.Random, SystemRandom),
      so tests substitute a seeded Random without touching the weighting steps
    - Participants walked in order of first contribution (dict insertion order)
    - Falls back to the last participant if float rounding leaves a positive remainder
"""

import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from burnwheel.core.round_state import Contribution


class RandomSource(Protocol):
    def random(self) -> float: ...


@dataclass(frozen=True)
class ParticipantWeight:
    participant: str
    raw: int
    effective: float
    first_entry: Contribution


def effective_weights(
    contributions: Sequence[Contribution], cap_fraction: float,
) -> list[ParticipantWeight]:
    """Aggregate by participant and clamp to the cap. Pure, no randomness.

    Returns [] when the pot is empty or non-positive.
    """
    raw: dict[str, int] = {}
    first: dict[str, Contribution] = {}
    for c in contributions:
        raw[c.participant] = raw.get(c.participant, 0) + c.amount
        first.setdefault(c.participant, c)

    total_raw = sum(raw.values())
    if total_raw <= 0:
        return []

    cap = total_raw * cap_fraction
    return [
        ParticipantWeight(
            participant=p, raw=w, effective=min(w, cap), first_entry=first[p],
        )
        for p, w in raw.items()
    ]


def select_winner(
    contributions: Sequence[Contribution],
    cap_fraction: float,
    rng: RandomSource | None = None,
) -> Contribution | None:
    """Draw a winner weighted by capped contribution. None when no weight."""
    weights = effective_weights(contributions, cap_fraction)
    effective_total = sum(w.effective for w in weights)
    if effective_total <= 0:
        return None

    rng = rng or random.SystemRandom()
    roll = rng.random() * effective_total
    for w in weights:
        if w.effective <= 0:
            continue
        roll -= w.effective
        if roll <= 0:
            return w.first_entry
    return weights[-1].first_entry
