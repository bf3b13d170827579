"""FeedEntry ORM — bounded display feeds (recent burns, recent payouts).

Invariants:
    - kind is one of FeedKind values
    - Newest entry = highest id

Design Decisions:
    - One table for all feeds, payload as JSON (ADR: feeds are display-only)
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from burnwheel.db.base import Base


class FeedEntry(Base):
    """Auxiliary feed record."""
    __tablename__ = "feed_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
