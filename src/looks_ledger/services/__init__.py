# src/looks_ledger/services/__init__.py
"""Business logic services for the Looks Ledger application."""

from .billing import BillingProvider, RevenueCatClient, SubscriberState
from .credits import CreditLedgerService, CreditResult
from .entitlements import EntitlementReconciler, ReconcileResult, ReconcileState
from .impressions import record_impression
from .rate_limit import DailyLimitStatus, RateLimiter
from .webhooks import WebhookProcessor

__all__ = [
    "BillingProvider",
    "RevenueCatClient",
    "SubscriberState",
    "CreditLedgerService",
    "CreditResult",
    "EntitlementReconciler",
    "ReconcileResult",
    "ReconcileState",
    "record_impression",
    "DailyLimitStatus",
    "RateLimiter",
    "WebhookProcessor",
]
