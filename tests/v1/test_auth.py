# tests/v1/test_auth.py
"""Bearer token handling shared by every user-facing endpoint."""

from datetime import timedelta

import pytest
from fastapi import status
from fastapi.security import HTTPAuthorizationCredentials

from looks_ledger.api.v1.dependencies import decode_user_id, get_current_user_id
from looks_ledger.services.errors import UnauthorizedError

PROTECTED = [
    ("get", "/api/v1/credits"),
    ("post", "/api/v1/credits/spend"),
    ("post", "/api/v1/credits/add"),
    ("post", "/api/v1/limits/daily"),
    ("post", "/api/v1/impressions"),
    ("post", "/api/v1/entitlements/sync"),
    ("post", "/api/v1/entitlements/ensure"),
]


@pytest.mark.parametrize(("method", "path"), PROTECTED)
def test_missing_token_is_unauthorized(client, method, path):
    r = client.request(method.upper(), path)

    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    assert r.json() == {"error": "Missing authorization header"}


def test_garbage_token_is_unauthorized(client):
    r = client.get("/api/v1/credits", headers={"Authorization": "Bearer not-a-jwt"})

    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    assert r.json() == {"error": "Could not validate credentials"}


class TestDecodeUserId:
    def test_valid_token(self, token_factory):
        assert decode_user_id(token_factory("user-1")) == "user-1"

    def test_expired_token(self, token_factory):
        with pytest.raises(UnauthorizedError):
            decode_user_id(token_factory("user-1", expires_in=timedelta(minutes=-5)))

    def test_wrong_secret(self, token_factory):
        with pytest.raises(UnauthorizedError):
            decode_user_id(token_factory("user-1", secret="someone-elses-secret"))

    def test_wrong_audience(self, token_factory):
        with pytest.raises(UnauthorizedError):
            decode_user_id(token_factory("user-1", audience="anon"))

    def test_non_bearer_scheme(self):
        credentials = HTTPAuthorizationCredentials(scheme="Basic", credentials="dXNlcjpwdw==")

        with pytest.raises(UnauthorizedError) as exc_info:
            get_current_user_id(credentials)

        assert exc_info.value.status_code == 401
