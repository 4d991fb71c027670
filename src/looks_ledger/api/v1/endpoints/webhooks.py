# src/looks_ledger/api/v1/endpoints/webhooks.py
"""RevenueCat webhook receiver.

RevenueCat authenticates with a shared secret in the Authorization header
rather than a user token.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status

from looks_ledger.api.v1.dependencies import BillingProviderDep, CreditServiceDep, SessionDep
from looks_ledger.core.settings import settings
from looks_ledger.schemas.webhooks import RevenueCatWebhook, WebhookResponse
from looks_ledger.services.webhooks import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def verify_webhook_secret(authorization: Annotated[str | None, Header()] = None) -> None:
    """Check the shared secret RevenueCat sends with every delivery.

    Runs as a route dependency, so an unauthenticated caller is turned away
    before the body is validated.

    Raises:
        HTTPException: 503 when no secret is configured, 401 on mismatch.
    """
    secret = settings.revenuecat_webhook_secret
    if not secret:
        logger.error("RevenueCat webhook received but REVENUECAT_WEBHOOK_SECRET is not set")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook not configured",
        )

    presented = authorization or ""
    if presented.lower().startswith("bearer "):
        presented = presented[7:]
    if not hmac.compare_digest(presented.encode(), secret.encode()):
        logger.warning("Rejected RevenueCat webhook with bad authorization")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook authorization",
        )


@router.post(
    "/revenuecat",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_webhook_secret)],
)
async def revenuecat_webhook(
    payload: RevenueCatWebhook,
    db: SessionDep,
    provider: BillingProviderDep,
    credits: CreditServiceDep,
) -> WebhookResponse:
    """Apply a subscription or credit pack event."""
    outcome = await WebhookProcessor(provider, credits).process(db, payload.event)
    return WebhookResponse(
        success=True,
        action=outcome.action,
        user_id=outcome.user_id,
        creator_mode_active=outcome.creator_mode_active,
        looks_added=outcome.looks_added,
        message=outcome.message,
    )
