"""Round ORM — persists one timed cycle of pooled contributions.

Invariants:
    - id is UUID primary key (client-generated by core.round_state.new_round)
    - Exactly one row has archived_at IS NULL: the current round
    - History = rows with archived_at set, highest number first
    - status transitions: open -> settling -> complete (settling may revert to open on deferral)

Design Decisions:
    - JSON columns for winner / pending_payout: small write-once records, no JOIN needed
    - pending_payout persisted BEFORE payout submission so a crash mid-payout is
      distinguishable from an idle open round on restart
    - cascade delete for contributions: history truncation removes the whole round
"""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from burnwheel.db.base import Base


class RoundRow(Base):
    """Round entity — owns its contributions."""
    __tablename__ = "rounds"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="open",
    )
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    closes_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    winner: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    payout_reference: Mapped[str | None] = mapped_column(
        String(128), nullable=True,
    )
    buyback_amount: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0,
    )
    pending_payout: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    settlement_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    archived_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True,
    )

    contributions: Mapped[list["ContributionRow"]] = relationship(
        "ContributionRow", back_populates="round",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="ContributionRow.position",
    )
