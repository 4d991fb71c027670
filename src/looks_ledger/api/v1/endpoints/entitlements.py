# src/looks_ledger/api/v1/endpoints/entitlements.py
"""Entitlement reconciliation endpoints ("Restore Purchases" and self-healing)."""

from fastapi import APIRouter

from looks_ledger.api.v1.dependencies import BillingProviderDep, CurrentUserIdDep, SessionDep
from looks_ledger.schemas.entitlements import (
    EnsureEntitlementResponse,
    SyncEntitlementsRequest,
    SyncEntitlementsResponse,
)
from looks_ledger.services.entitlements import EntitlementReconciler

router = APIRouter(prefix="/entitlements", tags=["entitlements"])


@router.post("/sync", response_model=SyncEntitlementsResponse)
async def sync_entitlements(
    payload: SyncEntitlementsRequest,
    user_id: CurrentUserIdDep,
    db: SessionDep,
    provider: BillingProviderDep,
) -> SyncEntitlementsResponse:
    """Converge the cached entitlement with the billing provider.

    The client's claim is only trusted when the provider cannot be reached.
    """
    result = await EntitlementReconciler(provider).sync(db, user_id, payload.active)
    return SyncEntitlementsResponse(
        success=True,
        creator_mode_active=result.entitlement_active,
        verified_with_revenuecat=result.verified,
    )


@router.post("/ensure", response_model=EnsureEntitlementResponse)
async def ensure_entitlement(
    user_id: CurrentUserIdDep,
    db: SessionDep,
    provider: BillingProviderDep,
) -> EnsureEntitlementResponse:
    """Make sure the caller has an account row, recovering pre-sign-in purchases."""
    result = await EntitlementReconciler(provider).ensure(db, user_id)
    return EnsureEntitlementResponse(
        success=True,
        action=result.action.value,
        creator_mode_active=result.entitlement_active,
        looks_balance=result.balance,
    )
