"""Round Enforcement — tests for due checks, pot split and reserve rule.

Tests cover:
    - evaluate_due: not open, not due, below quorum (unique participants), ready
    - split_pot conserves value and floors the payout
    - reserve_sufficient boundary
"""

from datetime import datetime, timedelta, timezone

from burnwheel.core.domain_types import RoundStatus
from burnwheel.core.enforce_round import (
    DueCheck, SettlementPolicy, evaluate_due, reserve_sufficient, split_pot,
)
from burnwheel.core.round_state import Contribution, new_round

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
POLICY = SettlementPolicy(
    round_interval=timedelta(minutes=5),
    min_participants=2,
    payout_share=0.5,
    concentration_cap=0.25,
    min_reserve=1_000,
    fee_buffer=5_000,
)


def _round_with(*participants: str):
    r = new_round(T0, POLICY.round_interval)
    for i, p in enumerate(participants):
        r.append(Contribution(f"ref-{i}", p, 100, T0))
    return r


# ─── evaluate_due ────────────────────────────────────────────────

def test_not_due_before_close():
    r = _round_with("A", "B")
    assert evaluate_due(r, T0 + timedelta(minutes=4), POLICY) == DueCheck.NOT_DUE


def test_due_exactly_at_close():
    r = _round_with("A", "B")
    assert evaluate_due(r, r.closes_at, POLICY) == DueCheck.READY


def test_below_quorum_counts_unique_participants():
    r = _round_with("A", "A", "A")
    assert r.entries_count == 3
    assert evaluate_due(r, r.closes_at, POLICY) == DueCheck.BELOW_QUORUM


def test_not_open_round_never_due():
    r = _round_with("A", "B")
    r.status = RoundStatus.SETTLING
    assert evaluate_due(r, r.closes_at, POLICY) == DueCheck.NOT_OPEN


# ─── split_pot ───────────────────────────────────────────────────

def test_split_pot_half():
    assert split_pot(1_000, 0.5) == (500, 500)


def test_split_pot_floors_payout_on_odd_pot():
    payout, buyback = split_pot(1_001, 0.5)
    assert payout == 500
    assert buyback == 501


def test_split_pot_conserves_large_values():
    pot = 123_456_789_012_345_677
    payout, buyback = split_pot(pot, 0.37)
    assert payout + buyback == pot
    assert payout == pot * 37 // 100


def test_split_pot_full_share():
    assert split_pot(999, 1.0) == (999, 0)


# ─── reserve_sufficient ──────────────────────────────────────────

def test_reserve_exactly_sufficient():
    assert reserve_sufficient(10_000 + 6_000, 10_000, POLICY)


def test_reserve_one_short():
    assert not reserve_sufficient(10_000 + 5_999, 10_000, POLICY)
