# src/looks_ledger/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .credits import AddCreditsRequest, AddCreditsResponse, BalanceResponse, SpendResponse
from .entitlements import EnsureEntitlementResponse, SyncEntitlementsRequest, SyncEntitlementsResponse
from .impressions import ImpressionCreate, ImpressionResponse
from .limits import DailyLimitRequest, DailyLimitResponse
from .webhooks import RevenueCatEvent, RevenueCatWebhook, WebhookResponse

__all__ = [
    "AddCreditsRequest", "AddCreditsResponse", "BalanceResponse", "SpendResponse",
    "EnsureEntitlementResponse", "SyncEntitlementsRequest", "SyncEntitlementsResponse",
    "ImpressionCreate", "ImpressionResponse",
    "DailyLimitRequest", "DailyLimitResponse",
    "RevenueCatEvent", "RevenueCatWebhook", "WebhookResponse",
]
