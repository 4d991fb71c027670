"""Entitlement sync and ensure schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SyncEntitlementsRequest(BaseModel):
    """Client's best guess of its subscription state."""

    active: bool = Field(..., description="Whether the client believes creator mode is active.")


class SyncEntitlementsResponse(BaseModel):
    """Entitlement stored after reconciliation."""

    success: bool = True
    creator_mode_active: bool
    verified_with_revenuecat: bool


class EnsureEntitlementResponse(BaseModel):
    """Account state after making sure the row exists."""

    success: bool = True
    action: str
    creator_mode_active: bool
    looks_balance: int
