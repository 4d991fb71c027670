"""Ledger of billing webhook deliveries that have already been applied."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from looks_ledger.db.session import Base
from looks_ledger.db.time import utcnow


class ProcessedWebhookEvent(Base):
    """One provider event id, written in the same transaction as its effect."""

    __tablename__ = "processed_webhook_event"

    event_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
