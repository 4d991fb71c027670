"""Atomic Looks balance mutations."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from looks_ledger.db.time import utcnow
from looks_ledger.models import entitlement_fields
from looks_ledger.services.account_store import account_table, stored_balance, upsert_account
from looks_ledger.services.errors import InvalidAmountError, PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreditResult:
    """Outcome of a balance mutation."""

    success: bool
    new_balance: int


class CreditLedgerService:
    """Spend and add Looks with single-statement read-modify-writes.

    The service holds no state of its own; every call receives the session
    it should run in and commits or rolls back before returning.
    """

    def spend(self, db: Session, user_id: str) -> CreditResult:
        """Spend one Look if the balance allows it.

        An empty balance is an expected outcome and returns ``success=False``
        with the current balance; nothing is written in that case.
        """
        stmt = (
            update(account_table)
            .where(account_table.c.user_id == user_id, account_table.c.balance > 0)
            .values(balance=account_table.c.balance - 1, updated_at=utcnow())
            .returning(account_table.c.balance)
        )
        try:
            new_balance = db.execute(stmt).scalar_one_or_none()
            if new_balance is None:
                balance = stored_balance(db, user_id)
                db.rollback()
                logger.info("Spend refused for user %s: insufficient credits (balance=%d)", user_id, balance)
                return CreditResult(success=False, new_balance=balance)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Spend failed for user %s: %s", user_id, exc, exc_info=True)
            raise PersistenceError(f"Failed to spend credit: {exc}") from exc

        logger.debug("User %s spent 1 Look, balance now %d", user_id, new_balance)
        return CreditResult(success=True, new_balance=int(new_balance))

    def add(self, db: Session, user_id: str, amount: int) -> CreditResult:
        """Add ``amount`` Looks, creating the account row on first purchase."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
            raise InvalidAmountError("amount must be a positive integer")

        now = utcnow()
        try:
            upsert_account(
                db,
                user_id,
                insert_values={
                    "balance": amount,
                    **entitlement_fields(False),
                    "created_at": now,
                    "updated_at": now,
                },
                update_values={
                    "balance": account_table.c.balance + amount,
                    "updated_at": now,
                },
            )
            # The upsert holds the row lock, so this read sees our own write.
            new_balance = stored_balance(db, user_id)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Add of %d Looks failed for user %s: %s", amount, user_id, exc, exc_info=True)
            raise PersistenceError(f"Failed to add credits: {exc}") from exc

        logger.info("Added %d Looks for user %s, balance now %d", amount, user_id, new_balance)
        return CreditResult(success=True, new_balance=new_balance)

    def get_balance(self, db: Session, user_id: str) -> int:
        """Return the current balance (0 before the first purchase)."""
        try:
            return stored_balance(db, user_id)
        except SQLAlchemyError as exc:
            logger.error("Balance read failed for user %s: %s", user_id, exc, exc_info=True)
            raise PersistenceError(f"Failed to read balance: {exc}") from exc


def get_credit_service() -> CreditLedgerService:
    """Return a credit ledger service instance."""
    return CreditLedgerService()
