# src/looks_ledger/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    credits_router,
    entitlements_router,
    impressions_router,
    limits_router,
    webhooks_router,
)

__all__ = [
    "credits_router",
    "entitlements_router",
    "impressions_router",
    "limits_router",
    "webhooks_router",
]
