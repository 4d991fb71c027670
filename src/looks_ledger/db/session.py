"""Engine and session factory for the ledger store."""

from __future__ import annotations

import logging
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from looks_ledger.core.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import looks_ledger.models  # noqa: E402,F401


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


# SQLite connections are handed between the event loop and worker threads.
_connect_args = {"check_same_thread": False} if is_sqlite_url(settings.effective_database_url) else {}

engine = create_engine(
    settings.effective_database_url,
    pool_pre_ping=True,
    echo=settings.sql_debug,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session; services commit or roll back themselves."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create the ledger tables on a local SQLite store.

    PostgreSQL deployments are migrated with Alembic instead.
    """
    if not is_sqlite_url(settings.effective_database_url):
        return
    logger.info("Creating ledger tables on %s", engine.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=engine)
