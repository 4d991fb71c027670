"""Tests for the RevenueCat billing provider."""

from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest

from looks_ledger.services.billing import (
    BillingProvider,
    RevenueCatClient,
    RevenueCatConfig,
    SubscriberState,
    evaluate_subscriber,
    looks_for_product,
)

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)
FUTURE = "2030-01-01T00:00:00Z"
PAST = "2020-01-01T00:00:00Z"
PACKS = {"10looks": 10, "30looks": 30, "100looks": 100}
KEYS = ("creator", "atelier", "Studio")


def _config(api_key: str | None = "sk_test") -> RevenueCatConfig:
    return RevenueCatConfig(
        api_key=api_key,
        base_url="https://rc.test/v1",
        timeout_seconds=2.0,
        entitlement_keys=KEYS,
        pack_products=PACKS,
    )


def _client(handler, api_key: str | None = "sk_test") -> RevenueCatClient:
    return RevenueCatClient(_config(api_key), transport=httpx.MockTransport(handler))


def _subscriber(**sections) -> dict:
    body = {"entitlements": {}, "subscriptions": {}, "non_subscriptions": {}}
    body.update(sections)
    return {"subscriber": body}


@pytest.mark.parametrize(
    ("product_id", "expected"),
    [
        ("com.looks.10looks", 10),
        ("com.looks.30looks", 30),
        ("com.looks.100looks", 100),
        ("com.looks.creator_monthly", 0),
        (None, 0),
        ("", 0),
    ],
)
def test_looks_for_product(product_id, expected):
    assert looks_for_product(product_id, PACKS) == expected


class TestEvaluateSubscriber:
    def test_active_entitlement(self):
        payload = _subscriber(entitlements={"creator": {"expires_date": FUTURE}})

        state = evaluate_subscriber(payload, entitlement_keys=KEYS, pack_products=PACKS, now=NOW)

        assert state.active is True
        assert state.verified is True

    def test_expired_entitlement_is_inactive(self):
        payload = _subscriber(entitlements={"creator": {"expires_date": PAST}})

        state = evaluate_subscriber(payload, entitlement_keys=KEYS, pack_products=PACKS, now=NOW)

        assert state.active is False
        assert state.verified is True

    def test_entitlement_without_expiry_is_inactive(self):
        payload = _subscriber(entitlements={"Studio": {"expires_date": None}})

        state = evaluate_subscriber(payload, entitlement_keys=KEYS, pack_products=PACKS, now=NOW)

        assert state.active is False
        assert state.verified is True

    def test_unknown_entitlement_key_is_ignored(self):
        payload = _subscriber(entitlements={"legacy_pro": {"expires_date": FUTURE}})

        state = evaluate_subscriber(payload, entitlement_keys=KEYS, pack_products=PACKS, now=NOW)

        assert state.active is False

    def test_unmapped_subscription_still_counts(self):
        payload = _subscriber(subscriptions={"com.looks.creator_yearly": {"expires_date": FUTURE}})

        state = evaluate_subscriber(payload, entitlement_keys=KEYS, pack_products=PACKS, now=NOW)

        assert state.active is True

    def test_counts_purchased_looks_and_aliases(self):
        payload = _subscriber(
            non_subscriptions={
                "com.looks.10looks": [{"id": "a"}, {"id": "b"}],
                "com.looks.30looks": [{"id": "c"}],
                "com.looks.sticker": [{"id": "d"}],
            }
        )
        payload["subscriber"]["original_app_user_id"] = "$RCAnonymousID:abc"
        payload["subscriber"]["other_aliases"] = ["6b1f3c2e-8d4a-4f7e-9a21-3c5d7e9f1a2b"]

        state = evaluate_subscriber(payload, entitlement_keys=KEYS, pack_products=PACKS, now=NOW)

        assert state.looks_purchased == 50
        assert state.aliases == ("$RCAnonymousID:abc", "6b1f3c2e-8d4a-4f7e-9a21-3c5d7e9f1a2b")

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            "subscriber",
            {},
            {"subscriber": []},
            {"subscriber": {"other_aliases": 5}},
            {"subscriber": {"other_aliases": "abc"}},
            {"subscriber": {"entitlements": ["creator"]}},
            {"subscriber": {"entitlements": {"creator": {"expires_date": 12345}}}},
        ],
    )
    def test_malformed_payload_raises(self, payload):
        with pytest.raises(ValueError):
            evaluate_subscriber(payload, entitlement_keys=KEYS, pack_products=PACKS, now=NOW)


class TestRevenueCatClient:
    def test_client_satisfies_billing_provider(self):
        assert isinstance(_client(lambda request: httpx.Response(200)), BillingProvider)

    async def test_active_subscriber(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_subscriber(entitlements={"creator": {"expires_date": FUTURE}}))

        state = await _client(handler).fetch_subscriber_state("u1")

        assert state.active is True
        assert state.verified is True
        assert seen[0].headers["Authorization"] == "Bearer sk_test"
        assert seen[0].url.path == "/v1/subscribers/u1"

    async def test_not_found_is_verified_inactive(self):
        state = await _client(lambda request: httpx.Response(404)).fetch_subscriber_state("u1")

        assert state == SubscriberState.not_found()
        assert state.verified is True
        assert state.active is False

    async def test_server_error_is_unverified(self):
        state = await _client(lambda request: httpx.Response(500)).fetch_subscriber_state("u1")

        assert state.verified is False
        assert "500" in state.error

    async def test_malformed_body_is_unverified(self):
        state = await _client(
            lambda request: httpx.Response(200, json={"unexpected": True})
        ).fetch_subscriber_state("u1")

        assert state.verified is False
        assert "Malformed" in state.error

    @pytest.mark.parametrize(
        "content",
        [b"null", b"[]", b'"ok"', b'{"subscriber": {"other_aliases": 5}}', b"not json"],
    )
    async def test_unexpected_body_shape_is_unverified(self, content):
        state = await _client(
            lambda request: httpx.Response(
                200, content=content, headers={"Content-Type": "application/json"}
            )
        ).fetch_subscriber_state("u1")

        assert state.verified is False
        assert state.active is False
        assert "Malformed" in state.error

    async def test_timeout_is_unverified(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        state = await _client(handler).fetch_subscriber_state("u1")

        assert state.verified is False
        assert "timed out" in state.error

    async def test_connection_error_is_unverified(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        state = await _client(handler).fetch_subscriber_state("u1")

        assert state.verified is False

    async def test_missing_api_key_skips_request(self):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        state = await _client(handler, api_key=None).fetch_subscriber_state("u1")

        assert state.verified is False
        assert calls == []
