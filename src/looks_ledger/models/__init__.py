# src/looks_ledger/models/__init__.py
"""SQLAlchemy models for the Looks Ledger service."""

from .account import AccountLedger, QualityTier, entitlement_fields
from .generation import GenerationEvent
from .impression import OfferImpression
from .webhook_event import ProcessedWebhookEvent

__all__ = [
    "AccountLedger", "QualityTier", "entitlement_fields",
    "GenerationEvent",
    "OfferImpression",
    "ProcessedWebhookEvent",
]
