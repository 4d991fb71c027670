# src/looks_ledger/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .credits import router as credits_router
from .entitlements import router as entitlements_router
from .impressions import router as impressions_router
from .limits import router as limits_router
from .webhooks import router as webhooks_router

__all__ = [
    "credits_router",
    "entitlements_router",
    "impressions_router",
    "limits_router",
    "webhooks_router",
]
