"""Reconcile the cached entitlement flag with the billing system of record.

The billing provider is authoritative; the account row is a cache. Every
write here changes only the entitlement columns (``entitlement_active``,
``quality_tier``, ``watermark_disabled``, ``updated_at``) so a concurrent
balance mutation is never lost.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

import httpx
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from looks_ledger.core.settings import settings
from looks_ledger.db.time import utcnow
from looks_ledger.models import GenerationEvent, entitlement_fields
from looks_ledger.services.account_store import (
    insert_account_if_missing,
    load_account,
    upsert_account,
)
from looks_ledger.services.billing import BillingProvider, SubscriberState
from looks_ledger.services.errors import PersistenceError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


class ReconcileState(str, Enum):
    """Terminal states of a sync call."""

    VERIFIED_ACTIVE = "verified_active"
    VERIFIED_INACTIVE = "verified_inactive"
    UNVERIFIED_TRUSTED = "unverified_trusted"


class EnsureAction(str, Enum):
    """What an ensure call did to the account row."""

    EXISTS = "exists"
    CREATED = "created"
    RACE_HEALED = "race_healed"


@dataclass(frozen=True)
class ReconcileResult:
    """Resolved entitlement and whether the provider actually confirmed it."""

    entitlement_active: bool
    verified: bool
    state: ReconcileState


@dataclass(frozen=True)
class EnsureResult:
    """Account state after an ensure call."""

    action: EnsureAction
    entitlement_active: bool
    balance: int


def resolve_entitlement(client_claimed_active: bool, subscriber: SubscriberState) -> ReconcileResult:
    """Pick the entitlement value to persist.

    A verified answer wins, including the authoritative ``False`` the provider
    gives for unknown subscribers. Only an unverified answer falls back to
    the client's claim.
    """
    if subscriber.verified:
        state = ReconcileState.VERIFIED_ACTIVE if subscriber.active else ReconcileState.VERIFIED_INACTIVE
        return ReconcileResult(entitlement_active=subscriber.active, verified=True, state=state)
    return ReconcileResult(
        entitlement_active=bool(client_claimed_active),
        verified=False,
        state=ReconcileState.UNVERIFIED_TRUSTED,
    )


async def query_billing_provider(
    provider: BillingProvider,
    user_id: str,
    *,
    timeout: float,
) -> SubscriberState:
    """Ask ``provider`` about ``user_id`` within ``timeout`` seconds.

    A timeout or any exception from the provider becomes an unverified
    answer; nothing is left pending.
    """
    try:
        return await asyncio.wait_for(provider.fetch_subscriber_state(user_id), timeout=timeout)
    except TimeoutError:
        logger.warning("Billing provider timed out after %.1fs for user %s", timeout, user_id)
        return SubscriberState.unverified("Billing provider timed out")
    except (UpstreamUnavailableError, httpx.HTTPError, OSError) as exc:
        logger.warning("Billing provider failed for user %s: %s", user_id, exc)
        return SubscriberState.unverified(str(exc))
    except Exception as exc:
        # Any other provider failure is still an unverified answer.
        logger.warning(
            "Billing provider raised %s for user %s: %s",
            type(exc).__name__,
            user_id,
            exc,
            exc_info=True,
        )
        return SubscriberState.unverified(f"Billing provider error: {exc}")


def apply_entitlement(db: Session, user_id: str, active: bool) -> None:
    """Write the entitlement columns, creating the row with a zero balance if needed.

    ``balance`` is deliberately absent from the update set. The caller owns
    the transaction.
    """
    now = utcnow()
    fields = {**entitlement_fields(active), "updated_at": now}
    upsert_account(
        db,
        user_id,
        insert_values={"balance": 0, "created_at": now, **fields},
        update_values=fields,
    )


class EntitlementReconciler:
    """Sync and ensure operations over an injected billing provider."""

    def __init__(self, provider: BillingProvider, *, timeout: float | None = None) -> None:
        self.provider = provider
        self.timeout = float(settings.revenuecat_timeout_seconds if timeout is None else timeout)

    async def _query_provider(self, user_id: str) -> SubscriberState:
        return await query_billing_provider(self.provider, user_id, timeout=self.timeout)

    async def sync(self, db: Session, user_id: str, client_claimed_active: bool) -> ReconcileResult:
        """Converge the cached entitlement to the provider's view.

        Raises:
            PersistenceError: If the store rejects the write.
        """
        logger.info(
            "Syncing entitlement for user %s: client says active=%s",
            user_id,
            client_claimed_active,
        )
        subscriber = await self._query_provider(user_id)
        result = resolve_entitlement(client_claimed_active, subscriber)
        if not result.verified:
            logger.warning(
                "Trusting client entitlement for user %s (%s)",
                user_id,
                subscriber.error or "unverified",
            )

        try:
            apply_entitlement(db, user_id, result.entitlement_active)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Entitlement sync write failed for user %s: %s", user_id, exc, exc_info=True)
            raise PersistenceError(f"Failed to persist entitlement: {exc}") from exc

        logger.info(
            "Sync complete for user %s: active=%s state=%s",
            user_id,
            result.entitlement_active,
            result.state.value,
        )
        return result

    async def ensure(self, db: Session, user_id: str) -> EnsureResult:
        """Guarantee an account row exists, seeding it from the provider.

        A missing row is created with the provider's entitlement and with
        Looks bought before sign-in, minus generations already made. An
        existing row is returned untouched; its balance is never credited.

        Raises:
            PersistenceError: If the store rejects the read or write.
        """
        try:
            existing = load_account(db, user_id)
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(f"Failed to read account: {exc}") from exc
        if existing is not None:
            result = EnsureResult(
                action=EnsureAction.EXISTS,
                entitlement_active=existing.entitlement_active,
                balance=existing.balance,
            )
            db.rollback()
            return result

        subscriber = await self._query_provider(user_id)
        active = subscriber.active if subscriber.verified else False

        try:
            recovered = 0
            if subscriber.verified and subscriber.looks_purchased > 0:
                used = db.execute(
                    select(func.count())
                    .select_from(GenerationEvent)
                    .where(GenerationEvent.user_id == user_id)
                ).scalar_one()
                recovered = max(0, subscriber.looks_purchased - min(int(used), subscriber.looks_purchased))
                logger.info(
                    "Recovering %d Looks for user %s (purchased=%d, used~%d)",
                    recovered,
                    user_id,
                    subscriber.looks_purchased,
                    used,
                )

            now = utcnow()
            created = insert_account_if_missing(
                db,
                user_id,
                {
                    "balance": recovered,
                    **entitlement_fields(active),
                    "created_at": now,
                    "updated_at": now,
                },
            )
            if created:
                db.commit()
                logger.info(
                    "Created account for user %s: active=%s balance=%d",
                    user_id,
                    active,
                    recovered,
                )
                return EnsureResult(action=EnsureAction.CREATED, entitlement_active=active, balance=recovered)

            logger.info("Account for user %s created concurrently; healing entitlement only", user_id)
            if subscriber.verified:
                apply_entitlement(db, user_id, active)
            db.commit()
            account = load_account(db, user_id)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Ensure failed for user %s: %s", user_id, exc, exc_info=True)
            raise PersistenceError(f"Failed to ensure account: {exc}") from exc

        return EnsureResult(
            action=EnsureAction.RACE_HEALED,
            entitlement_active=account.entitlement_active if account else active,
            balance=account.balance if account else 0,
        )
