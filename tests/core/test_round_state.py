"""Round State — tests for the in-memory round, replay guard and registry.

Tests cover:
    - Round computed properties (pot, entries, unique participants)
    - append only while OPEN; complete is write-once
    - ReplayGuard FIFO eviction and capacity
    - RoundRegistry archive prepends, truncates and reports dropped rounds
"""

from datetime import datetime, timedelta, timezone

import pytest

from burnwheel.core.domain_types import RoundStatus
from burnwheel.core.round_state import (
    Contribution, ReplayGuard, RoundRegistry, WinnerRecord, new_round,
)

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
INTERVAL = timedelta(minutes=5)


def _completed(number: int):
    r = new_round(T0, INTERVAL, number)
    r.complete(WinnerRecord("A", 10, 5), f"payout-{number}", 5, T0)
    return r


# ─── Round ───────────────────────────────────────────────────────

def test_new_round_is_open_and_empty():
    r = new_round(T0, INTERVAL)
    assert r.status == RoundStatus.OPEN
    assert r.closes_at == T0 + INTERVAL
    assert r.pot_total == 0
    assert r.entries_count == 0
    assert r.unique_participants == 0


def test_round_aggregates():
    r = new_round(T0, INTERVAL)
    r.append(Contribution("r1", "A", 10, T0))
    r.append(Contribution("r2", "A", 15, T0))
    r.append(Contribution("r3", "B", 5, T0))
    assert r.pot_total == 30
    assert r.entries_count == 3
    assert r.unique_participants == 2


def test_append_rejected_once_settling():
    r = new_round(T0, INTERVAL)
    r.status = RoundStatus.SETTLING
    with pytest.raises(ValueError):
        r.append(Contribution("r1", "A", 10, T0))


def test_complete_is_write_once():
    r = _completed(1)
    assert r.status == RoundStatus.COMPLETE
    assert r.completed_at == T0
    with pytest.raises(ValueError):
        r.complete(WinnerRecord("B", 1, 1), "other", 0, T0)


# ─── ReplayGuard ─────────────────────────────────────────────────

def test_guard_evicts_oldest_first():
    guard = ReplayGuard(capacity=3)
    for ref in ["a", "b", "c"]:
        assert guard.add(ref) == []
    assert guard.add("d") == ["a"]
    assert "a" not in guard
    assert guard.references() == ["b", "c", "d"]


def test_guard_loaded_beyond_capacity_keeps_newest():
    guard = ReplayGuard(["a", "b", "c", "d"], capacity=2)
    assert guard.references() == ["c", "d"]
    assert len(guard) == 2


# ─── RoundRegistry ───────────────────────────────────────────────

def test_archive_requires_complete_round():
    registry = RoundRegistry(current=new_round(T0, INTERVAL))
    with pytest.raises(ValueError):
        registry.archive_current(new_round(T0, INTERVAL, 2))


def test_archive_prepends_and_truncates():
    history = [_completed(n) for n in (3, 2, 1)]
    registry = RoundRegistry(current=_completed(4), history=history, history_capacity=3)

    expected_drop = registry.overflow_on_archive()
    dropped = registry.archive_current(new_round(T0, INTERVAL, 5))

    assert [r.number for r in registry.history] == [4, 3, 2]
    assert [r.number for r in dropped] == [1]
    assert dropped == expected_drop
    assert registry.current.number == 5


def test_archive_below_capacity_drops_nothing():
    registry = RoundRegistry(current=_completed(1), history_capacity=20)
    assert registry.overflow_on_archive() == []
    assert registry.archive_current(new_round(T0, INTERVAL, 2)) == []
    assert len(registry.history) == 1
