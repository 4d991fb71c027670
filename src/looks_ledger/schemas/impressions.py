"""Offer impression schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ImpressionCreate(BaseModel):
    """An offer shown to the caller."""

    offer_key: str | None = None
    surface: str | None = None
    action_taken: str | None = None
    context: Any = None


class ImpressionResponse(BaseModel):
    success: bool = True
