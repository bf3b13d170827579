"""Round Summary — pure projection of a Round into its public read model.

Invariants:
    - Never raises on empty rounds: pot 0, counts 0, winner None
    - time_remaining_seconds is clamped at 0 (a due round reports 0, not negative)
    - Amounts stay integers in the smallest ledger unit

Design Decisions:
    - Pure function, not a Round method (ADR: Round is enforcement, summaries are presentation)
"""

from datetime import datetime

from burnwheel.core.round_state import Round


def summarize_round(round_: Round, now: datetime) -> dict:
    """Build the public summary for a round. Pure, no IO."""
    remaining = (round_.closes_at - now).total_seconds()
    return {
        "id": str(round_.id),
        "number": round_.number,
        "status": round_.status.value,
        "start_time": round_.start_time.isoformat(),
        "closes_at": round_.closes_at.isoformat(),
        "time_remaining_seconds": max(0, int(remaining)),
        "pot_amount": round_.pot_total,
        "entries_count": round_.entries_count,
        "unique_participants": round_.unique_participants,
        "entries": [
            {
                "reference": c.reference,
                "participant": c.participant,
                "amount": c.amount,
                "admitted_at": c.admitted_at.isoformat(),
            }
            for c in round_.contributions
        ],
        "winner": round_.winner.to_dict() if round_.winner else None,
        "payout_reference": round_.payout_reference,
        "buyback_amount": round_.buyback_amount,
        "completed_at": (
            round_.completed_at.isoformat() if round_.completed_at else None
        ),
    }
