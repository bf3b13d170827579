"""Initial schema — rounds, contributions, consumed_references, feed_entries.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "rounds",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("number", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closes_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("winner", sa.JSON, nullable=True),
        sa.Column("payout_reference", sa.String(128), nullable=True),
        sa.Column("buyback_amount", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("pending_payout", sa.JSON, nullable=True),
        sa.Column("settlement_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rounds_number", "rounds", ["number"])
    op.create_index("ix_rounds_archived_at", "rounds", ["archived_at"])

    op.create_table(
        "contributions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "round_id", sa.Uuid,
            sa.ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("reference", sa.String(128), nullable=False),
        sa.Column("participant", sa.String(64), nullable=False),
        sa.Column("amount", sa.BigInteger, nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("admitted_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_contributions_round_id", "contributions", ["round_id"])
    op.create_index("ix_contributions_reference", "contributions", ["reference"])

    op.create_table(
        "consumed_references",
        sa.Column("seq", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("reference", sa.String(128), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("reference", name="uq_consumed_references_reference"),
    )

    op.create_table(
        "feed_entries",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_feed_entries_kind", "feed_entries", ["kind"])


def downgrade() -> None:
    op.drop_index("ix_feed_entries_kind", table_name="feed_entries")
    op.drop_table("feed_entries")
    op.drop_table("consumed_references")
    op.drop_index("ix_contributions_reference", table_name="contributions")
    op.drop_index("ix_contributions_round_id", table_name="contributions")
    op.drop_table("contributions")
    op.drop_index("ix_rounds_archived_at", table_name="rounds")
    op.drop_index("ix_rounds_number", table_name="rounds")
    op.drop_table("rounds")
