"""Schemas for the rolling generation limit."""

from __future__ import annotations

from pydantic import BaseModel, Field


class DailyLimitRequest(BaseModel):
    """Body for a daily limit check."""

    action: str = Field(
        default="check",
        description="'check' only reads; 'record' also logs a generation when permitted.",
    )


class DailyLimitResponse(BaseModel):
    """Rate limit status for the caller."""

    can_generate: bool
    count: int
    limit: int
    remaining: int
    reset_in_minutes: int
    reset_time_formatted: str
    recorded: bool | None = None
    error: str | None = None
