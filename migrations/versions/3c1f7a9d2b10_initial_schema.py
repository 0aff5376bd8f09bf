"""initial schema

Revision ID: 3c1f7a9d2b10
Revises:
Create Date: 2026-10-18 09:12:44.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c1f7a9d2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

json_type = sa.JSON(none_as_null=True).with_variant(
    postgresql.JSONB(none_as_null=True), "postgresql"
)


def upgrade() -> None:
    """Create profiles, verifications and payment_events."""
    op.create_table(
        "profiles",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("credits >= 0", name="ck_profiles_credits_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "verifications",
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("trust_report", json_type, nullable=True),
        sa.Column("raw_data", json_type, nullable=True),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'error')",
            name="ck_verifications_status",
        ),
        sa.PrimaryKeyConstraint("username"),
    )
    op.create_index("ix_verifications_status", "verifications", ["status"])
    op.create_index("ix_verifications_fetched_at", "verifications", ["fetched_at"])
    op.create_table(
        "payment_events",
        sa.Column("event_id", sa.Text(), nullable=False),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("account_id", sa.Text(), nullable=True),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )


def downgrade() -> None:
    """Drop all TrustLens tables."""
    op.drop_table("payment_events")
    op.drop_index("ix_verifications_fetched_at", table_name="verifications")
    op.drop_index("ix_verifications_status", table_name="verifications")
    op.drop_table("verifications")
    op.drop_table("profiles")
