# tests/v1/test_impressions_api.py
"""HTTP tests for offer impressions."""

from fastapi import status
from sqlalchemy import select

from looks_ledger.models import OfferImpression


def test_impression_is_recorded(client, auth_headers, db_session, user_id):
    r = client.post(
        "/api/v1/impressions",
        json={
            "offer_key": "creator_trial",
            "surface": "paywall",
            "action_taken": "viewed",
            "context": {"source": "onboarding"},
        },
        headers=auth_headers,
    )

    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"success": True}
    stored = db_session.execute(select(OfferImpression)).scalars().one()
    assert stored.user_id == user_id
    assert stored.context == {"source": "onboarding"}


def test_missing_surface_is_rejected(client, auth_headers):
    r = client.post("/api/v1/impressions", json={"offer_key": "creator_trial"}, headers=auth_headers)

    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json() == {"error": "Missing offer_key or surface"}
