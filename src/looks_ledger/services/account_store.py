"""Partial-write helpers for the shared account ledger row.

The credit service and the entitlement reconciler both write the same row.
Each writer passes only the columns it owns, so a concurrent writer's
columns are never overwritten.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy import Table, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from looks_ledger.models import AccountLedger

logger = logging.getLogger(__name__)

account_table = AccountLedger.__table__

# Dialects that support INSERT ... ON CONFLICT DO UPDATE.
_ON_CONFLICT_INSERTS: dict[str, Callable[..., Any]] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def supports_on_conflict(db: Session) -> bool:
    """Return True when the bound dialect can upsert in one statement."""
    return db.get_bind().dialect.name in _ON_CONFLICT_INSERTS


def upsert_account(
    db: Session,
    user_id: str,
    *,
    insert_values: Mapping[str, Any],
    update_values: Mapping[str, Any],
) -> None:
    """Create the row with ``insert_values`` or apply ``update_values`` to it.

    Uses a single conditional upsert where the store supports it; otherwise
    falls back to update, insert on miss and retry-as-update on conflict.
    The caller owns the transaction.
    """
    factory = _ON_CONFLICT_INSERTS.get(db.get_bind().dialect.name)
    if factory is None:
        update_then_insert(
            db,
            user_id,
            insert_values=insert_values,
            update_values=update_values,
        )
        return

    stmt = factory(account_table).values(user_id=user_id, **insert_values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[account_table.c.user_id],
        set_=dict(update_values),
    )
    db.execute(stmt)


def insert_if_absent(db: Session, table: Table, key: str, values: Mapping[str, Any]) -> bool:
    """Insert ``values`` into ``table`` unless a row with the same ``key`` exists.

    Return True if this call created the row. The caller owns the transaction.
    """
    factory = _ON_CONFLICT_INSERTS.get(db.get_bind().dialect.name)
    if factory is not None:
        stmt = factory(table).values(**values).on_conflict_do_nothing(index_elements=[table.c[key]])
        return bool(db.execute(stmt).rowcount)

    try:
        with db.begin_nested():
            db.execute(insert(table).values(**values))
    except IntegrityError:
        return False
    return True


def insert_account_if_missing(db: Session, user_id: str, values: Mapping[str, Any]) -> bool:
    """Insert a fresh account row unless one exists. Return True if this call created it."""
    return insert_if_absent(db, account_table, "user_id", {"user_id": user_id, **values})


def _apply_update(db: Session, user_id: str, values: Mapping[str, Any]) -> int:
    result = db.execute(
        update(account_table)
        .where(account_table.c.user_id == user_id)
        .values(**values)
    )
    return int(result.rowcount or 0)


def update_then_insert(
    db: Session,
    user_id: str,
    *,
    insert_values: Mapping[str, Any],
    update_values: Mapping[str, Any],
) -> None:
    """Two-step upsert for stores without ``ON CONFLICT`` support.

    A unique-key conflict on insert means a concurrent writer created the row
    between our update and insert; it is repaired by updating again.
    """
    if _apply_update(db, user_id, update_values):
        return

    try:
        with db.begin_nested():
            db.execute(insert(account_table).values(user_id=user_id, **insert_values))
    except IntegrityError:
        logger.info("Account row for user %s created concurrently; retrying as update", user_id)
        _apply_update(db, user_id, update_values)


def stored_balance(db: Session, user_id: str) -> int:
    """Return the persisted balance, or 0 when the user has no row yet."""
    balance = db.execute(
        select(account_table.c.balance).where(account_table.c.user_id == user_id)
    ).scalar_one_or_none()
    return int(balance or 0)


def load_account(db: Session, user_id: str) -> AccountLedger | None:
    """Return the account row for ``user_id`` if it exists."""
    return db.execute(
        select(AccountLedger).where(AccountLedger.user_id == user_id)
    ).scalar_one_or_none()
