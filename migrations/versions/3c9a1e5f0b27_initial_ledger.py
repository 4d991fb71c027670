"""initial ledger

Revision ID: 3c9a1e5f0b27
Revises:
Create Date: 2026-10-18 09:12:41.518204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c9a1e5f0b27"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the account ledger and its append-only event logs."""
    op.create_table(
        "account_ledger",
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("entitlement_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("quality_tier", sa.String(length=16), nullable=False, server_default="standard"),
        sa.Column("watermark_disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("balance >= 0", name="ck_account_ledger_balance_non_negative"),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_table(
        "generation_event",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_generation_event_user_created",
        "generation_event",
        ["user_id", "created_at"],
        unique=False,
    )
    op.create_table(
        "offer_impression",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("offer_key", sa.Text(), nullable=False),
        sa.Column("surface", sa.Text(), nullable=False),
        sa.Column("action_taken", sa.Text(), nullable=True),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_offer_impression_user_id"),
        "offer_impression",
        ["user_id"],
        unique=False,
    )


def downgrade() -> None:
    """Drop the ledger tables."""
    op.drop_index(op.f("ix_offer_impression_user_id"), table_name="offer_impression")
    op.drop_table("offer_impression")
    op.drop_index("ix_generation_event_user_created", table_name="generation_event")
    op.drop_table("generation_event")
    op.drop_table("account_ledger")
