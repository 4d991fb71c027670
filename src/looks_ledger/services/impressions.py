"""Append-only recording of offer impressions."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from looks_ledger.db.time import utcnow
from looks_ledger.models import AccountLedger, OfferImpression
from looks_ledger.services.errors import InvalidInputError, PersistenceError

logger = logging.getLogger(__name__)


def record_impression(
    db: Session,
    user_id: str,
    offer_key: str,
    surface: str,
    action_taken: str | None = None,
    context: Any | None = None,
) -> OfferImpression:
    """Append one impression and touch the account's ``last_seen_at``.

    Both writes share one transaction. ``last_seen_at`` is only updated on
    an existing account row; this never creates one.

    Raises:
        InvalidInputError: If ``offer_key`` or ``surface`` is blank.
        PersistenceError: If the store rejects the write.
    """
    if not offer_key or not offer_key.strip() or not surface or not surface.strip():
        raise InvalidInputError("Missing offer_key or surface")

    now = utcnow()
    impression = OfferImpression(
        user_id=user_id,
        offer_key=offer_key,
        surface=surface,
        action_taken=action_taken or None,
        context=context or None,
        created_at=now,
    )
    try:
        db.add(impression)
        db.execute(
            update(AccountLedger)
            .where(AccountLedger.user_id == user_id)
            .values(last_seen_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Recording impression %s/%s failed for user %s: %s",
            offer_key,
            surface,
            user_id,
            exc,
            exc_info=True,
        )
        raise PersistenceError(f"Failed to record impression: {exc}") from exc

    logger.debug("Recorded impression %s on %s for user %s", offer_key, surface, user_id)
    return impression
