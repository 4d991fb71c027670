# src/looks_ledger/models/account.py
"""Per-user account row holding the Looks balance and cached entitlement."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from looks_ledger.db.session import Base
from looks_ledger.db.time import utcnow


class QualityTier(str, enum.Enum):
    """Output quality granted to a user, derived from the entitlement flag."""

    STANDARD = "standard"
    ELEVATED = "elevated"


def entitlement_fields(active: bool) -> dict[str, object]:
    """Return the entitlement column values implied by ``active``.

    ``quality_tier`` and ``watermark_disabled`` are never written on their own;
    every writer goes through this helper.
    """
    return {
        "entitlement_active": active,
        "quality_tier": (QualityTier.ELEVATED if active else QualityTier.STANDARD).value,
        "watermark_disabled": active,
    }


class AccountLedger(Base):
    """Balance and entitlement cache for one user.

    The balance is owned by the credit service; the entitlement columns are
    owned by the reconciler. Writers touch only their own columns.
    """

    __tablename__ = "account_ledger"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_account_ledger_balance_non_negative"),)

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    entitlement_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quality_tier: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=QualityTier.STANDARD.value,
    )
    watermark_disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
