"""State Repository — durable storage for the round registry and replay guard.

Invariants:
    - save_admission writes the consumed reference AND the contribution in one
      transaction: neither can exist without the other after a crash
    - A concurrent double admission of the same reference fails on the UNIQUE
      constraint and surfaces as DuplicateReferenceError
    - archive() seals the completed round, inserts the next round and deletes
      truncated history in one transaction
    - load() always returns a registry with a current round (creating one on first start)

Design Decisions:
    - Core dataclasses are rebuilt from rows on load; rows are never handed to core
    - Scalar updates via UPDATE statements: contributions are append-only rows and
      never rewritten by a round update
    - Replay guard eviction by seq threshold: oldest-first, one DELETE per admission
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from burnwheel.core.clock import ensure_utc
from burnwheel.core.domain_types import RoundStatus
from burnwheel.core.enforce_round import SettlementPolicy
from burnwheel.core.errors import DuplicateReferenceError, ErrorContext
from burnwheel.core.round_state import (
    Contribution,
    EngineState,
    PendingPayout,
    ReplayGuard,
    Round,
    RoundRegistry,
    WinnerRecord,
    new_round,
)
from burnwheel.infrastructure.database import DatabaseSessionManager
from burnwheel.models.consumed_reference import ConsumedReference
from burnwheel.models.contribution import ContributionRow
from burnwheel.models.round import RoundRow

logger = logging.getLogger(__name__)


class StateRepository:
    """SQL persistence for EngineState."""

    def __init__(self, db: DatabaseSessionManager):
        self.db = db

    async def load(
        self,
        now: datetime,
        policy: SettlementPolicy,
        history_capacity: int,
        guard_capacity: int,
    ) -> EngineState:
        """Rebuild EngineState from storage. Creates the first round if none exists."""
        async with self.db.session() as db:
            current_row = (await db.execute(
                select(RoundRow)
                .where(RoundRow.archived_at.is_(None))
                .order_by(RoundRow.number.desc()),
            )).scalars().first()
            history_rows = (await db.execute(
                select(RoundRow)
                .where(RoundRow.archived_at.is_not(None))
                .order_by(RoundRow.number.desc())
                .limit(history_capacity),
            )).scalars().all()
            refs = (await db.execute(
                select(ConsumedReference.reference)
                .order_by(ConsumedReference.seq.desc())
                .limit(guard_capacity),
            )).scalars().all()

            if current_row is None:
                number = history_rows[0].number + 1 if history_rows else 1
                current = new_round(now, policy.round_interval, number)
                db.add(_new_row(current))
                await db.commit()
                logger.info(
                    f"Opened round #{current.number}",
                    extra={"round_id": str(current.id)},
                )
            else:
                current = _to_round(current_row)

            history = [_to_round(r) for r in history_rows]

        return EngineState(
            registry=RoundRegistry(
                current=current, history=history,
                history_capacity=history_capacity,
            ),
            replay_guard=ReplayGuard(
                list(reversed(refs)), capacity=guard_capacity,
            ),
        )

    async def save_admission(
        self,
        round_id: uuid.UUID,
        contribution: Contribution,
        position: int,
        guard_capacity: int,
    ) -> None:
        """Atomically consume the reference and record the contribution."""
        async with self.db.session() as db:
            db.add(ConsumedReference(
                reference=contribution.reference,
                consumed_at=contribution.admitted_at,
            ))
            db.add(ContributionRow(
                round_id=round_id,
                reference=contribution.reference,
                participant=contribution.participant,
                amount=contribution.amount,
                position=position,
                admitted_at=contribution.admitted_at,
            ))
            try:
                await db.flush()
            except IntegrityError:
                await db.rollback()
                raise DuplicateReferenceError(
                    contribution.reference,
                    ErrorContext(
                        reference=contribution.reference, round_id=str(round_id),
                    ),
                )
            await self._evict_references(db, guard_capacity)
            await db.commit()

    async def save_round(self, round_: Round) -> None:
        """Persist the round's scalar state (status, deadlines, payout fields)."""
        async with self.db.session() as db:
            await db.execute(
                update(RoundRow)
                .where(RoundRow.id == round_.id)
                .values(**_round_values(round_)),
            )
            await db.commit()

    async def archive(
        self,
        completed: Round,
        next_round: Round,
        dropped: list[Round],
        now: datetime,
    ) -> None:
        """Seal `completed` into history, open `next_round`, delete `dropped`."""
        async with self.db.session() as db:
            values = _round_values(completed)
            values["archived_at"] = now
            await db.execute(
                update(RoundRow)
                .where(RoundRow.id == completed.id)
                .values(**values),
            )
            db.add(_new_row(next_round))
            if dropped:
                ids = [r.id for r in dropped]
                await db.execute(
                    delete(ContributionRow).where(ContributionRow.round_id.in_(ids)),
                )
                await db.execute(delete(RoundRow).where(RoundRow.id.in_(ids)))
            await db.commit()

    async def _evict_references(self, db, capacity: int) -> None:
        threshold = (await db.execute(
            select(ConsumedReference.seq)
            .order_by(ConsumedReference.seq.desc())
            .offset(capacity)
            .limit(1),
        )).scalar_one_or_none()
        if threshold is not None:
            await db.execute(
                delete(ConsumedReference).where(ConsumedReference.seq <= threshold),
            )


# --- Row <-> core mapping -------------------------------------------------------

def _round_values(round_: Round) -> dict:
    return {
        "status": round_.status.value,
        "closes_at": round_.closes_at,
        "winner": round_.winner.to_dict() if round_.winner else None,
        "payout_reference": round_.payout_reference,
        "buyback_amount": round_.buyback_amount,
        "pending_payout": (
            round_.pending_payout.to_dict() if round_.pending_payout else None
        ),
        "settlement_started_at": round_.settlement_started_at,
        "completed_at": round_.completed_at,
    }


def _new_row(round_: Round) -> RoundRow:
    return RoundRow(
        id=round_.id,
        number=round_.number,
        start_time=round_.start_time,
        **_round_values(round_),
    )


def _to_round(row: RoundRow) -> Round:
    return Round(
        id=row.id,
        number=row.number,
        start_time=ensure_utc(row.start_time),
        closes_at=ensure_utc(row.closes_at),
        status=RoundStatus(row.status),
        contributions=[
            Contribution(
                reference=c.reference,
                participant=c.participant,
                amount=c.amount,
                admitted_at=ensure_utc(c.admitted_at),
            )
            for c in sorted(row.contributions, key=lambda c: c.position)
        ],
        winner=WinnerRecord.from_dict(row.winner) if row.winner else None,
        payout_reference=row.payout_reference,
        buyback_amount=row.buyback_amount,
        pending_payout=(
            PendingPayout.from_dict(row.pending_payout)
            if row.pending_payout else None
        ),
        settlement_started_at=ensure_utc(row.settlement_started_at),
        completed_at=ensure_utc(row.completed_at),
    )
