"""Append-only log of rate-limited generation actions."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from looks_ledger.db.session import Base
from looks_ledger.db.time import utcnow


class GenerationEvent(Base):
    """One generation attempt counted against the rolling window."""

    __tablename__ = "generation_event"
    __table_args__ = (Index("ix_generation_event_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
