# tests/v1/test_webhooks_api.py
"""HTTP tests for the RevenueCat webhook receiver."""

import pytest
from fastapi import status

from looks_ledger.core.settings import settings
from looks_ledger.models import AccountLedger

WEBHOOK_URL = "/api/v1/webhooks/revenuecat"
ACCOUNT_ID = "6b1f3c2e-8d4a-4f7e-9a21-3c5d7e9f1a2b"


@pytest.fixture
def webhook_secret(monkeypatch) -> str:
    monkeypatch.setattr(settings, "revenuecat_webhook_secret", "whsec_test")
    return "whsec_test"


def _payload(event_type: str, **fields) -> dict:
    return {"event": {"type": event_type, "app_user_id": ACCOUNT_ID, **fields}, "api_version": "1.0"}


def test_unconfigured_secret_is_unavailable(client, monkeypatch):
    monkeypatch.setattr(settings, "revenuecat_webhook_secret", None)

    r = client.post(WEBHOOK_URL, json=_payload("RENEWAL"))

    assert r.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert r.json() == {"error": "Webhook not configured"}


def test_wrong_secret_is_rejected(client, webhook_secret):
    r = client.post(WEBHOOK_URL, json=_payload("RENEWAL"), headers={"Authorization": "Bearer nope"})

    assert r.status_code == status.HTTP_401_UNAUTHORIZED


def test_renewal_activates(client, webhook_secret, db_session):
    r = client.post(
        WEBHOOK_URL,
        json=_payload("RENEWAL", entitlement_ids=["creator"], product_id="creator_monthly"),
        headers={"Authorization": f"Bearer {webhook_secret}"},
    )

    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {
        "success": True,
        "action": "activated",
        "user_id": ACCOUNT_ID,
        "creator_mode_active": True,
    }
    assert db_session.get(AccountLedger, ACCOUNT_ID).entitlement_active is True


def test_raw_secret_without_bearer_prefix_is_accepted(client, webhook_secret):
    r = client.post(
        WEBHOOK_URL,
        json=_payload("NON_RENEWING_PURCHASE", product_id="com.looks.100looks"),
        headers={"Authorization": webhook_secret},
    )

    assert r.status_code == status.HTTP_200_OK
    assert r.json()["looks_added"] == 100


def test_redelivered_purchase_is_acknowledged_without_crediting(client, webhook_secret, db_session):
    body = _payload("NON_RENEWING_PURCHASE", id="evt_9f1c", product_id="com.looks.30looks")
    headers = {"Authorization": f"Bearer {webhook_secret}"}

    first = client.post(WEBHOOK_URL, json=body, headers=headers)
    second = client.post(WEBHOOK_URL, json=body, headers=headers)

    assert first.json()["action"] == "credits_added"
    assert second.status_code == status.HTTP_200_OK
    assert second.json() == {
        "success": True,
        "action": "duplicate",
        "user_id": ACCOUNT_ID,
        "message": "Event already processed",
    }
    db_session.expire_all()
    assert db_session.get(AccountLedger, ACCOUNT_ID).balance == 30


def test_bad_secret_is_rejected_before_body_validation(client, webhook_secret):
    r = client.post(WEBHOOK_URL, json={"event": {}}, headers={"Authorization": "Bearer nope"})

    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    assert r.json() == {"error": "Invalid webhook authorization"}


def test_missing_secret_config_is_reported_before_body_validation(client, monkeypatch):
    monkeypatch.setattr(settings, "revenuecat_webhook_secret", None)

    r = client.post(WEBHOOK_URL, json={"event": {"type": 7}})

    assert r.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


def test_valid_secret_with_bad_body_is_a_bad_request(client, webhook_secret):
    r = client.post(
        WEBHOOK_URL,
        json={"event": {"app_user_id": ACCOUNT_ID}},
        headers={"Authorization": f"Bearer {webhook_secret}"},
    )

    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json()["error"].startswith("Invalid request")
