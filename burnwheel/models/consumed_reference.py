"""ConsumedReference ORM — durable replay guard.

Invariants:
    - reference is UNIQUE: a concurrent double admission fails at commit
    - seq is monotonically increasing; eviction deletes the lowest seq first

Design Decisions:
    - Separate table from contributions: guard outlives history truncation
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from burnwheel.db.base import Base


class ConsumedReference(Base):
    """Replay guard entry."""
    __tablename__ = "consumed_references"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reference: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True,
    )
    consumed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
