"""processed webhook event

Revision ID: 8d4e2b7c1a90
Revises: 3c9a1e5f0b27
Create Date: 2026-10-18 14:03:27.904113

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "8d4e2b7c1a90"
down_revision: Union[str, Sequence[str], None] = "3c9a1e5f0b27"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Track applied RevenueCat event ids."""
    op.create_table(
        "processed_webhook_event",
        sa.Column("event_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("event_id"),
    )


def downgrade() -> None:
    """Drop the processed event ledger."""
    op.drop_table("processed_webhook_event")
