"""Rolling-window limit on generation actions."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Final

from sqlalchemy import DateTime, String, func, insert, literal, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from looks_ledger.core.settings import settings
from looks_ledger.db.time import as_utc, utcnow
from looks_ledger.models import GenerationEvent
from looks_ledger.services.errors import InvalidInputError

logger = logging.getLogger(__name__)

ACTION_CHECK: Final[str] = "check"
ACTION_RECORD: Final[str] = "record"
_ACTIONS: Final[frozenset[str]] = frozenset({ACTION_CHECK, ACTION_RECORD})
FAIL_OPEN_MESSAGE: Final[str] = "Could not verify limit"
RECORD_FAILED_MESSAGE: Final[str] = "Could not record generation"


@dataclass(frozen=True)
class DailyLimitStatus:
    """Answer to "may this user generate right now?"."""

    can_generate: bool
    count: int
    limit: int
    remaining: int
    reset_in_minutes: int = 0
    reset_time_formatted: str = "now"
    recorded: bool = False
    error: str | None = None

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "can_generate": self.can_generate,
            "count": self.count,
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_in_minutes": self.reset_in_minutes,
            "reset_time_formatted": self.reset_time_formatted,
        }
        if self.recorded:
            payload["recorded"] = True
        if self.error is not None:
            payload["error"] = self.error
        return payload


def format_reset_time(minutes: int) -> str:
    """Render minutes as ``"2h 5m"``, ``"42 minutes"`` or ``"now"``."""
    if minutes <= 0:
        return "now"
    hours, rest = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {rest}m"
    return f"{rest} minutes"


def minutes_until_reset(oldest: datetime, now: datetime, window: timedelta) -> int:
    """Minutes until ``oldest`` leaves the trailing window, never negative."""
    seconds = (as_utc(oldest) + window - now).total_seconds()
    return max(0, math.ceil(seconds / 60))


class RateLimiter:
    """Sliding-window counter over the generation event log.

    The window is recomputed relative to ``now`` on every call, so there is
    no reset job: events simply age out of the trailing window.
    """

    def __init__(self, *, limit: int | None = None, window_hours: int | None = None) -> None:
        self.limit = settings.daily_generation_limit if limit is None else int(limit)
        self.window_hours = (
            settings.daily_limit_window_hours if window_hours is None else int(window_hours)
        )

    @property
    def window(self) -> timedelta:
        return timedelta(hours=self.window_hours)

    def _fail_open(self, user_id: str, exc: Exception) -> DailyLimitStatus:
        logger.warning(
            "Daily limit check failed for user %s, allowing generation: %s",
            user_id,
            exc,
        )
        return DailyLimitStatus(
            can_generate=True,
            count=0,
            limit=self.limit,
            remaining=self.limit,
            error=FAIL_OPEN_MESSAGE,
        )

    def _recent_events(self, db: Session, user_id: str, now: datetime) -> list[datetime]:
        rows = db.execute(
            select(GenerationEvent.created_at)
            .where(
                GenerationEvent.user_id == user_id,
                GenerationEvent.created_at >= now - self.window,
            )
            .order_by(GenerationEvent.created_at.asc())
        ).scalars()
        return list(rows)

    def check(
        self,
        db: Session,
        user_id: str,
        *,
        action: str = ACTION_CHECK,
        now: datetime | None = None,
    ) -> DailyLimitStatus:
        """Count events in the trailing window and optionally record one.

        ``action="record"`` appends a generation event only when the check
        permits it. A failing count query fails open.
        """
        if action not in _ACTIONS:
            raise InvalidInputError(f"Unknown action '{action}'")

        current = as_utc(now) if now is not None else utcnow()
        try:
            events = self._recent_events(db, user_id, current)
        except SQLAlchemyError as exc:
            db.rollback()
            return self._fail_open(user_id, exc)

        count = len(events)
        if count >= self.limit:
            reset_minutes = minutes_until_reset(events[0], current, self.window) if events else 0
            logger.info(
                "User %s reached the generation limit (%d/%d), resets in %d min",
                user_id,
                count,
                self.limit,
                reset_minutes,
            )
            return DailyLimitStatus(
                can_generate=False,
                count=count,
                limit=self.limit,
                remaining=0,
                reset_in_minutes=reset_minutes,
                reset_time_formatted=format_reset_time(reset_minutes),
            )

        recorded = False
        error = None
        if action == ACTION_RECORD:
            try:
                recorded = self._record(db, user_id, current)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.warning(
                    "Recording generation failed for user %s, allowing anyway: %s",
                    user_id,
                    exc,
                )
                error = RECORD_FAILED_MESSAGE
            else:
                if not recorded:
                    logger.info(
                        "Concurrent generation for user %s filled the window first",
                        user_id,
                    )
                    return self.check(db, user_id, now=current)
                count += 1

        return DailyLimitStatus(
            can_generate=True,
            count=count,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            recorded=recorded,
            error=error,
        )

    def _record(self, db: Session, user_id: str, at: datetime) -> bool:
        """Append an event only if the window still has room. Return True if it did.

        The count and the insert run as one statement. SQLite takes its write
        lock before evaluating it; PostgreSQL callers first take a per-user
        advisory lock held until commit.
        """
        if db.get_bind().dialect.name == "postgresql":
            db.execute(select(func.pg_advisory_xact_lock(func.hashtext(user_id))))

        in_window = (
            select(func.count())
            .select_from(GenerationEvent)
            .where(
                GenerationEvent.user_id == user_id,
                GenerationEvent.created_at >= at - self.window,
            )
            .scalar_subquery()
        )
        stmt = insert(GenerationEvent).from_select(
            ["user_id", "created_at"],
            select(
                literal(user_id, String(128)),
                literal(at, DateTime(timezone=True)),
            ).where(in_window < self.limit),
        )
        result = db.execute(stmt)
        db.commit()
        return bool(result.rowcount)


def get_rate_limiter() -> RateLimiter:
    """Return a rate limiter configured from settings."""
    return RateLimiter()
