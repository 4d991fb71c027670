"""RevenueCat webhook payload schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RevenueCatEvent(BaseModel):
    """The ``event`` object RevenueCat posts for subscription lifecycle changes."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    type: str
    app_user_id: str
    original_app_user_id: str | None = None
    aliases: list[str] = Field(default_factory=list)
    product_id: str | None = None
    entitlement_ids: list[str] | None = None
    period_type: str | None = None
    purchased_at_ms: int | None = None
    expiration_at_ms: int | None = None
    environment: str | None = None


class RevenueCatWebhook(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: RevenueCatEvent


class WebhookResponse(BaseModel):
    """Acknowledgement returned to RevenueCat."""

    success: bool = True
    action: str
    user_id: str | None = None
    creator_mode_active: bool | None = None
    looks_added: int | None = None
    message: str | None = None
