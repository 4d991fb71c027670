"""Billing provider capability and its RevenueCat implementation.

The entitlement reconciler only depends on :class:`BillingProvider`; the
RevenueCat wire format stays inside this module. A provider answer is
either *verified* (the provider spoke authoritatively, including "this
subscriber does not exist") or *unverified* (credentials missing, network
failure, timeout, unexpected status or body), in which case callers fall
back to their own policy.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from looks_ledger.core.settings import settings
from looks_ledger.db.time import as_utc, utcnow
from looks_ledger.services.errors import UpstreamUnavailableError

# Configure logger for this module
logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_OK = 200
HTTP_NOT_FOUND = 404


@dataclass(frozen=True)
class SubscriberState:
    """Subscription view reported by the billing provider."""

    active: bool
    verified: bool
    error: str | None = None
    looks_purchased: int = 0
    aliases: tuple[str, ...] = ()

    @classmethod
    def unverified(cls, error: str) -> SubscriberState:
        return cls(active=False, verified=False, error=error)

    @classmethod
    def not_found(cls) -> SubscriberState:
        return cls(active=False, verified=True)


@runtime_checkable
class BillingProvider(Protocol):
    """Anything that can report a user's subscription state."""

    async def fetch_subscriber_state(self, user_id: str) -> SubscriberState:
        """Return the provider's view of ``user_id``; never raise for upstream failures."""
        ...


@dataclass(frozen=True)
class RevenueCatConfig:
    """Immutable configuration for RevenueCat API calls."""

    api_key: str | None
    base_url: str
    timeout_seconds: float
    entitlement_keys: tuple[str, ...]
    pack_products: Mapping[str, int] = field(default_factory=dict)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


def load_revenuecat_config() -> RevenueCatConfig:
    """Build configuration object from global settings."""

    return RevenueCatConfig(
        api_key=settings.revenuecat_api_key,
        base_url=settings.revenuecat_base_url.rstrip("/"),
        timeout_seconds=float(settings.revenuecat_timeout_seconds),
        entitlement_keys=tuple(settings.revenuecat_entitlement_keys),
        pack_products=dict(settings.looks_pack_products),
    )


def looks_for_product(product_id: str | None, pack_products: Mapping[str, int]) -> int:
    """Return the Looks granted by a credit pack product, or 0 if unknown.

    Product ids are matched by fragment (``com.app.30looks`` -> ``30looks``);
    longer fragments are tried first so ``100looks`` never matches ``10looks``.
    """
    if not product_id:
        return 0
    for fragment in sorted(pack_products, key=len, reverse=True):
        if fragment in product_id:
            return int(pack_products[fragment])
    return 0


def _parse_timestamp(value: Any) -> datetime:
    if not isinstance(value, str):
        raise ValueError(f"expected ISO-8601 string, got {type(value).__name__}")
    return as_utc(datetime.fromisoformat(value))


def _has_active_entitlement(
    entitlements: Mapping[str, Any],
    keys: Iterable[str],
    now: datetime,
) -> bool:
    for key in keys:
        grant = entitlements.get(key)
        if not isinstance(grant, Mapping):
            continue
        expires = grant.get("expires_date")
        # A grant without an expiry date is not treated as active.
        if expires and _parse_timestamp(expires) > now:
            return True
    return False


def _has_active_subscription(subscriptions: Mapping[str, Any], now: datetime) -> bool:
    for product_id, item in subscriptions.items():
        if not isinstance(item, Mapping) or not item.get("expires_date"):
            continue
        if _parse_timestamp(item["expires_date"]) > now:
            logger.debug("Active subscription %s expires %s", product_id, item["expires_date"])
            return True
    return False


def _count_looks_purchased(
    non_subscriptions: Mapping[str, Any],
    pack_products: Mapping[str, int],
) -> int:
    total = 0
    for product_id, purchases in non_subscriptions.items():
        if isinstance(purchases, list):
            total += looks_for_product(product_id, pack_products) * len(purchases)
    return total


def evaluate_subscriber(
    payload: Any,
    *,
    entitlement_keys: Iterable[str],
    pack_products: Mapping[str, int],
    now: datetime | None = None,
) -> SubscriberState:
    """Turn a ``GET /subscribers/{id}`` body into a :class:`SubscriberState`.

    The subscription is active if any recognised entitlement has an
    ``expires_date`` in the future OR any raw subscription line item does.
    The second check covers products the provider forgot to map onto an
    entitlement. A grant without ``expires_date`` never counts.

    Raises:
        ValueError: If the body does not have the expected shape.
    """
    current = now or utcnow()
    if not isinstance(payload, Mapping):
        raise ValueError(f"response body is {type(payload).__name__}, not an object")
    subscriber = payload.get("subscriber")
    if not isinstance(subscriber, Mapping):
        raise ValueError("response has no subscriber object")

    entitlements = subscriber.get("entitlements") or {}
    subscriptions = subscriber.get("subscriptions") or {}
    non_subscriptions = subscriber.get("non_subscriptions") or {}
    for name, section in (
        ("entitlements", entitlements),
        ("subscriptions", subscriptions),
        ("non_subscriptions", non_subscriptions),
    ):
        if not isinstance(section, Mapping):
            raise ValueError(f"subscriber.{name} is not an object")

    has_entitlement = _has_active_entitlement(entitlements, entitlement_keys, current)
    has_subscription = _has_active_subscription(subscriptions, current)

    aliases: list[str] = []
    original_id = subscriber.get("original_app_user_id")
    if isinstance(original_id, str):
        aliases.append(original_id)
    other_aliases = subscriber.get("other_aliases") or []
    if not isinstance(other_aliases, list):
        raise ValueError("subscriber.other_aliases is not a list")
    aliases.extend(a for a in other_aliases if isinstance(a, str))

    logger.info(
        "RevenueCat: entitlement=%s, active_subscription=%s",
        has_entitlement,
        has_subscription,
    )
    return SubscriberState(
        active=has_entitlement or has_subscription,
        verified=True,
        looks_purchased=_count_looks_purchased(non_subscriptions, pack_products),
        aliases=tuple(aliases),
    )


class RevenueCatClient:
    """HTTP client for the RevenueCat subscribers API."""

    def __init__(
        self,
        config: RevenueCatConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_revenuecat_config()
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def _get_subscriber(self, user_id: str) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            ) as client:
                return await client.get(f"/subscribers/{quote(user_id, safe='')}", headers=headers)
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailableError(f"RevenueCat request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"RevenueCat request failed: {exc}") from exc

    async def fetch_subscriber_state(self, user_id: str) -> SubscriberState:
        """Ask RevenueCat for ``user_id``'s subscription state."""
        if not self.enabled:
            logger.warning("REVENUECAT_API_KEY not configured, cannot verify user %s", user_id)
            return SubscriberState.unverified("RevenueCat is not configured")

        try:
            response = await self._get_subscriber(user_id)
            if response.status_code == HTTP_NOT_FOUND:
                logger.info("User %s not found in RevenueCat (new or lapsed user)", user_id)
                return SubscriberState.not_found()
            if response.status_code != HTTP_OK:
                raise UpstreamUnavailableError(
                    f"RevenueCat responded with {response.status_code}",
                    upstream_status=response.status_code,
                )
            try:
                return evaluate_subscriber(
                    response.json(),
                    entitlement_keys=self.config.entitlement_keys,
                    pack_products=self.config.pack_products,
                )
            except ValueError as exc:
                raise UpstreamUnavailableError(f"Malformed RevenueCat response: {exc}") from exc
        except UpstreamUnavailableError as exc:
            logger.warning(
                "RevenueCat verification failed for user %s (upstream_status=%s): %s",
                user_id,
                exc.upstream_status,
                exc,
            )
            return SubscriberState.unverified(str(exc))


def get_billing_provider() -> BillingProvider:
    """Return a billing provider configured from settings."""
    return RevenueCatClient()
