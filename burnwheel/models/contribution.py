"""Contribution ORM — one admitted payment credited toward a round.

Invariants:
    - Always belongs to a Round (round_id FK)
    - position preserves admission order within the round
    - Written in the same transaction as its ConsumedReference

Design Decisions:
    - Surrogate integer PK, reference only indexed: the replay guard is the
      uniqueness authority, and it is bounded (an evicted reference may recur)
"""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from burnwheel.db.base import Base


class ContributionRow(Base):
    """Contribution entity."""
    __tablename__ = "contributions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False,
        index=True,
    )
    reference: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    participant: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    admitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    round: Mapped["RoundRow"] = relationship(
        "RoundRow", back_populates="contributions",
    )
