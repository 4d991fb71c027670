"""Apply RevenueCat webhook events to the ledger.

Subscription lifecycle events flip the cached entitlement; credit pack
purchases add Looks. Entitlement writes go through the same partial upsert
the reconciler uses, so the balance is never overwritten. An event id is
claimed in the transaction that applies it, so a redelivery changes nothing.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Final

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from looks_ledger.core.settings import settings
from looks_ledger.db.time import utcnow
from looks_ledger.models import ProcessedWebhookEvent
from looks_ledger.schemas.webhooks import RevenueCatEvent
from looks_ledger.services.account_store import insert_if_absent
from looks_ledger.services.billing import BillingProvider, looks_for_product
from looks_ledger.services.credits import CreditLedgerService
from looks_ledger.services.entitlements import apply_entitlement, query_billing_provider
from looks_ledger.services.errors import PersistenceError

logger = logging.getLogger(__name__)

ANONYMOUS_ID_PREFIX: Final[str] = "$RCAnonymousID"
_ACCOUNT_ID_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

# Event type -> action label for events that turn creator mode on.
ACTIVATING_EVENTS: Final[Mapping[str, str]] = {
    "INITIAL_PURCHASE": "activated",
    "RENEWAL": "activated",
    "UNCANCELLATION": "activated",
    "SUBSCRIPTION_EXTENDED": "activated",
    "TRIAL_STARTED": "trial_started",
    "TRIAL_CONVERTED": "trial_converted",
}
DEACTIVATING_EVENTS: Final[frozenset[str]] = frozenset({"EXPIRATION", "CANCELLATION", "BILLING_ISSUE"})
CREDIT_PACK_EVENT: Final[str] = "NON_RENEWING_PURCHASE"

processed_event_table = ProcessedWebhookEvent.__table__


@dataclass(frozen=True)
class WebhookOutcome:
    """What processing an event did."""

    action: str
    user_id: str | None = None
    creator_mode_active: bool | None = None
    looks_added: int | None = None
    message: str | None = None


def is_anonymous_id(app_user_id: str) -> bool:
    return app_user_id.startswith(ANONYMOUS_ID_PREFIX)


def first_account_id(candidates: Iterable[str]) -> str | None:
    """Return the first candidate that looks like one of our account ids."""
    for candidate in candidates:
        if not candidate.startswith("$") and _ACCOUNT_ID_PATTERN.match(candidate):
            return candidate
    return None


def _duplicate(user_id: str) -> WebhookOutcome:
    return WebhookOutcome(action="duplicate", user_id=user_id, message="Event already processed")


class WebhookProcessor:
    """Translate provider events into ledger writes."""

    def __init__(
        self,
        provider: BillingProvider,
        credits: CreditLedgerService,
        *,
        pack_products: Mapping[str, int] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.provider = provider
        self.credits = credits
        self.pack_products = dict(settings.looks_pack_products if pack_products is None else pack_products)
        self.timeout = float(settings.revenuecat_timeout_seconds if timeout is None else timeout)

    async def resolve_user_id(self, event: RevenueCatEvent) -> str | None:
        """Map the event's app user id onto an account id.

        Anonymous purchasers are resolved through the event's aliases first,
        then through the provider's current alias list.
        """
        if not is_anonymous_id(event.app_user_id):
            return event.app_user_id

        resolved = first_account_id(event.aliases)
        if resolved:
            return resolved

        logger.info("No account alias in webhook for %s, asking provider", event.app_user_id)
        subscriber = await query_billing_provider(self.provider, event.app_user_id, timeout=self.timeout)
        if subscriber.verified:
            return first_account_id(subscriber.aliases)
        return None

    async def process(self, db: Session, event: RevenueCatEvent) -> WebhookOutcome:
        """Apply one event.

        Raises:
            PersistenceError: If the store rejects the write, so the provider
                retries delivery.
        """
        logger.info(
            "RevenueCat webhook %s for %s (product=%s, entitlements=%s)",
            event.type,
            event.app_user_id,
            event.product_id,
            event.entitlement_ids,
        )
        user_id = await self.resolve_user_id(event)
        if user_id is None:
            logger.error(
                "Anonymous %s for product %s has no account id (aliases=%s); "
                "it will be recovered when the user signs in",
                event.type,
                event.product_id,
                event.aliases,
            )
            return WebhookOutcome(
                action="unresolved",
                message="Anonymous purchase logged, will self-heal on auth",
            )

        if event.type in ACTIVATING_EVENTS:
            if not event.entitlement_ids:
                logger.warning(
                    "%s for product %s carries no entitlement ids; activating anyway",
                    event.type,
                    event.product_id,
                )
            if not self._claim(db, event, user_id):
                return _duplicate(user_id)
            return self._set_entitlement(db, user_id, True, ACTIVATING_EVENTS[event.type])

        if event.type in DEACTIVATING_EVENTS:
            if not self._claim(db, event, user_id):
                return _duplicate(user_id)
            return self._set_entitlement(db, user_id, False, "deactivated")

        if event.type == CREDIT_PACK_EVENT:
            looks = looks_for_product(event.product_id, self.pack_products)
            if looks <= 0:
                logger.warning("Ignoring purchase of unknown product %s", event.product_id)
                return WebhookOutcome(action="ignored", user_id=user_id, message="Unknown product")
            if not self._claim(db, event, user_id):
                return _duplicate(user_id)
            self.credits.add(db, user_id, looks)
            return WebhookOutcome(action="credits_added", user_id=user_id, looks_added=looks)

        logger.info("Unhandled RevenueCat event type %s", event.type)
        return WebhookOutcome(action="ignored", user_id=user_id, message="Event type not handled")

    def _claim(self, db: Session, event: RevenueCatEvent, user_id: str) -> bool:
        """Record ``event.id`` as processed without committing.

        Return False if an earlier delivery already claimed it. The claim
        commits or rolls back together with the write that follows.
        """
        if not event.id:
            logger.debug("RevenueCat %s for user %s has no event id", event.type, user_id)
            return True
        try:
            claimed = insert_if_absent(
                db,
                processed_event_table,
                "event_id",
                {
                    "event_id": event.id,
                    "event_type": event.type,
                    "user_id": user_id,
                    "processed_at": utcnow(),
                },
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Could not claim webhook event %s: %s", event.id, exc, exc_info=True)
            raise PersistenceError(f"Failed to record webhook event: {exc}") from exc
        if not claimed:
            db.rollback()
            logger.info("Skipping redelivered RevenueCat event %s (%s)", event.id, event.type)
        return claimed

    def _set_entitlement(self, db: Session, user_id: str, active: bool, action: str) -> WebhookOutcome:
        try:
            apply_entitlement(db, user_id, active)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Webhook entitlement write failed for user %s: %s", user_id, exc, exc_info=True)
            raise PersistenceError(f"Failed to update entitlement: {exc}") from exc
        logger.info("Webhook %s creator mode for user %s", action, user_id)
        return WebhookOutcome(action=action, user_id=user_id, creator_mode_active=active)
