"""ORM Models — SQLAlchemy declarative models for persisted engine state.

Invariants:
    - All models inherit from Base (db/base.py)
    - Round is the aggregate root for contributions

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from burnwheel.models.round import RoundRow  # noqa: F401
from burnwheel.models.contribution import ContributionRow  # noqa: F401
from burnwheel.models.consumed_reference import ConsumedReference  # noqa: F401
from burnwheel.models.feed_entry import FeedEntry  # noqa: F401
