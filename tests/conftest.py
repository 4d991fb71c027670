# tests/conftest.py
from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator, Iterator
from datetime import timedelta
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-for-looks-ledger")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from looks_ledger.api.v1.dependencies import get_billing_provider_dep
from looks_ledger.core.settings import settings
from looks_ledger.db.session import Base
from looks_ledger.db.session import get_db as app_get_session
from looks_ledger.db.time import utcnow
from looks_ledger.main import app as fastapi_app
from looks_ledger.models import AccountLedger, entitlement_fields
from looks_ledger.services.billing import SubscriberState

TEST_DB_URL = "sqlite://"


class FakeBillingProvider:
    """In-memory billing provider with a configurable answer."""

    def __init__(
        self,
        state: SubscriberState | None = None,
        *,
        delay: float = 0.0,
        exc: Exception | None = None,
    ) -> None:
        self.state = state or SubscriberState.unverified("RevenueCat is not configured")
        self.delay = delay
        self.exc = exc
        self.calls: list[str] = []

    async def fetch_subscriber_state(self, user_id: str) -> SubscriberState:
        self.calls.append(user_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.state


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        # Services commit on their own, so wipe the tables between tests.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def file_engine(tmp_path: Any) -> Generator[Engine, None, None]:
    """File-backed engine for tests that hit the store from several threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def billing() -> FakeBillingProvider:
    return FakeBillingProvider()


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    billing: FakeBillingProvider,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_billing_provider_dep] = lambda: billing
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_billing_provider_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def create_token(
    user_id: str,
    *,
    secret: str | None = None,
    audience: str | None = "authenticated",
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """Mint a bearer token shaped like the identity provider's."""
    claims: dict[str, Any] = {"sub": user_id, "exp": utcnow() + expires_in}
    if audience is not None:
        claims["aud"] = audience
    return jwt.encode(claims, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


@pytest.fixture()
def token_factory() -> Callable[..., str]:
    return create_token


@pytest.fixture()
def user_id() -> str:
    return "6b1f3c2e-8d4a-4f7e-9a21-3c5d7e9f1a2b"


@pytest.fixture()
def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(user_id)}"}


@pytest.fixture()
def make_account(db_session: Session) -> Callable[..., AccountLedger]:
    """Insert an account row directly, bypassing the services."""

    def _make(user_id: str, *, balance: int = 0, active: bool = False) -> AccountLedger:
        now = utcnow()
        account = AccountLedger(
            user_id=user_id,
            balance=balance,
            created_at=now,
            updated_at=now,
            **entitlement_fields(active),
        )
        db_session.add(account)
        db_session.commit()
        return account

    return _make
