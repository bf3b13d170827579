"""Weighted Selection — tests for capped aggregation and the weighted draw.

Tests cover:
    - Aggregation by participant in first-contribution order
    - Concentration cap clamps dominant participants
    - Empty pot and zero weights yield no winner
    - Returned entry is the participant's first contribution
    - Statistical sampling matches capped probabilities
"""

import random
from datetime import datetime, timezone

from burnwheel.core.round_state import Contribution
from burnwheel.core.weighted_selection import effective_weights, select_winner

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _c(ref: str, participant: str, amount: int) -> Contribution:
    return Contribution(reference=ref, participant=participant, amount=amount, admitted_at=T0)


class _FixedRoll:
    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


# ─── effective_weights ───────────────────────────────────────────

def test_weights_aggregate_in_first_contribution_order():
    weights = effective_weights(
        [_c("r1", "B", 10), _c("r2", "A", 5), _c("r3", "B", 20)], 1.0,
    )
    assert [w.participant for w in weights] == ["B", "A"]
    assert weights[0].raw == 30
    assert weights[0].first_entry.reference == "r1"


def test_weights_clamped_to_cap():
    weights = effective_weights([_c("r1", "A", 90), _c("r2", "B", 10)], 0.25)
    by_name = {w.participant: w for w in weights}
    assert by_name["A"].effective == 25
    assert by_name["B"].effective == 10


def test_weights_empty_pot():
    assert effective_weights([], 0.25) == []


def test_weights_zero_amounts():
    assert effective_weights([_c("r1", "A", 0)], 0.25) == []


# ─── select_winner ───────────────────────────────────────────────

def test_no_contributions_no_winner():
    assert select_winner([], 0.25, random.Random(1)) is None


def test_single_participant_always_wins():
    contributions = [_c("r1", "A", 100), _c("r2", "A", 50)]
    for seed in range(20):
        winner = select_winner(contributions, 0.25, random.Random(seed))
        assert winner.reference == "r1"


def test_low_roll_picks_first_participant():
    winner = select_winner(
        [_c("r1", "A", 50), _c("r2", "B", 50)], 1.0, _FixedRoll(0.0),
    )
    assert winner.participant == "A"


def test_high_roll_picks_last_participant():
    winner = select_winner(
        [_c("r1", "A", 50), _c("r2", "B", 50)], 1.0, _FixedRoll(0.999),
    )
    assert winner.participant == "B"


def test_boundary_roll_belongs_to_earlier_participant():
    # roll * total == 50 exactly: A's remainder reaches 0
    winner = select_winner(
        [_c("r1", "A", 50), _c("r2", "B", 50)], 1.0, _FixedRoll(0.5),
    )
    assert winner.participant == "A"


def test_winner_entry_is_first_contribution():
    contributions = [_c("r1", "A", 10), _c("r2", "B", 10), _c("r3", "B", 80)]
    winner = select_winner(contributions, 1.0, _FixedRoll(0.99))
    assert winner.participant == "B"
    assert winner.reference == "r2"


def test_cap_equalizes_whale_and_minnow_frequency():
    """A:90 B:10 at cap 0.25 → effective 25 vs 10 → A wins ≈ 25/35."""
    contributions = [_c("r1", "A", 90), _c("r2", "B", 10)]
    rng = random.Random(42)
    trials = 20_000
    wins = sum(
        1 for _ in range(trials)
        if select_winner(contributions, 0.25, rng).participant == "A"
    )
    assert abs(wins / trials - 25 / 35) < 0.02


def test_uncapped_selection_is_proportional():
    contributions = [_c("r1", "A", 75), _c("r2", "B", 25)]
    rng = random.Random(3)
    trials = 20_000
    wins = sum(
        1 for _ in range(trials)
        if select_winner(contributions, 1.0, rng).participant == "A"
    )
    assert abs(wins / trials - 0.75) < 0.02
