"""Feed Log — bounded, newest-first display feeds backed by the feed_entries table.

Invariants:
    - At most `capacity` entries are retained per feed kind (oldest trimmed on append)
    - recent(n) returns newest first and never more than capacity entries
    - Reads on an empty feed return []

Design Decisions:
    - Feeds are display-only: callers treat append() failures as non-fatal
      (ADR: feed failures isolated from settlement)
"""

from datetime import datetime

from sqlalchemy import delete, select

from burnwheel.core.clock import Clock, utc_now
from burnwheel.core.domain_types import DEFAULT_FEED_CAPACITY, FeedKind
from burnwheel.infrastructure.database import DatabaseSessionManager
from burnwheel.models.feed_entry import FeedEntry


class FeedLog:
    """One bounded feed (burns or payouts)."""

    def __init__(
        self,
        db: DatabaseSessionManager,
        kind: FeedKind,
        capacity: int = DEFAULT_FEED_CAPACITY,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.kind = kind
        self.capacity = capacity
        self.clock = clock

    async def append(self, payload: dict, created_at: datetime | None = None) -> None:
        async with self.db.session() as db:
            db.add(FeedEntry(
                kind=self.kind.value,
                payload=payload,
                created_at=created_at or self.clock(),
            ))
            await db.flush()
            threshold = (await db.execute(
                select(FeedEntry.id)
                .where(FeedEntry.kind == self.kind.value)
                .order_by(FeedEntry.id.desc())
                .offset(self.capacity)
                .limit(1),
            )).scalar_one_or_none()
            if threshold is not None:
                await db.execute(
                    delete(FeedEntry).where(
                        FeedEntry.kind == self.kind.value,
                        FeedEntry.id <= threshold,
                    ),
                )
            await db.commit()

    async def recent(self, limit: int) -> list[dict]:
        """Newest-first payloads, at most min(limit, capacity)."""
        limit = max(0, min(limit, self.capacity))
        if limit == 0:
            return []
        async with self.db.session() as db:
            rows = (await db.execute(
                select(FeedEntry.payload)
                .where(FeedEntry.kind == self.kind.value)
                .order_by(FeedEntry.id.desc())
                .limit(limit),
            )).scalars().all()
        return list(rows)
