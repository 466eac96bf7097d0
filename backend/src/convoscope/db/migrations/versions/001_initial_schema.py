"""Create conversation summaries and insights tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Summaries carry an optional grouping key (conversation_id) pointing at a
parent's summary_id. Insights are owned by a summary row and are removed
with it through ON DELETE CASCADE.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "conversation_summaries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("summary_type", sa.String(length=32), nullable=False),
        sa.Column("media_type", sa.String(length=50), nullable=False),
        sa.Column("language", sa.String(length=20), nullable=False),
        sa.Column("summary_id", sa.String(length=255), nullable=False),
        sa.Column("agent_id", sa.String(length=255), nullable=True),
        sa.Column("source_id", sa.String(length=255), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column(
            "generated", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("date_created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("conversation_id", sa.String(length=255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_conversation_summaries_summary_type",
        "conversation_summaries",
        ["summary_type"],
    )
    op.create_index(
        "ix_conversation_summaries_summary_id",
        "conversation_summaries",
        ["summary_id"],
    )
    op.create_index(
        "ix_conversation_summaries_date_created",
        "conversation_summaries",
        ["date_created"],
    )
    op.create_index(
        "ix_conversation_summaries_conversation_id",
        "conversation_summaries",
        ["conversation_id"],
    )

    op.create_table(
        "insights",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "owner_record_id",
            sa.Integer(),
            sa.ForeignKey("conversation_summaries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("outcome", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_insights_owner_record_id", "insights", ["owner_record_id"])


def downgrade() -> None:
    op.drop_index("ix_insights_owner_record_id", table_name="insights")
    op.drop_table("insights")
    op.drop_index(
        "ix_conversation_summaries_conversation_id",
        table_name="conversation_summaries",
    )
    op.drop_index(
        "ix_conversation_summaries_date_created", table_name="conversation_summaries"
    )
    op.drop_index(
        "ix_conversation_summaries_summary_id", table_name="conversation_summaries"
    )
    op.drop_index(
        "ix_conversation_summaries_summary_type", table_name="conversation_summaries"
    )
    op.drop_table("conversation_summaries")
