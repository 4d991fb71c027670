"""Offer impression endpoint."""

from fastapi import APIRouter

from looks_ledger.api.v1.dependencies import CurrentUserIdDep, SessionDep
from looks_ledger.schemas.impressions import ImpressionCreate, ImpressionResponse
from looks_ledger.services.impressions import record_impression

router = APIRouter(prefix="/impressions", tags=["impressions"])


@router.post("", response_model=ImpressionResponse)
async def create_impression(
    payload: ImpressionCreate,
    user_id: CurrentUserIdDep,
    db: SessionDep,
) -> ImpressionResponse:
    """Log that an offer was shown to the caller."""
    record_impression(
        db,
        user_id,
        payload.offer_key or "",
        payload.surface or "",
        action_taken=payload.action_taken,
        context=payload.context,
    )
    return ImpressionResponse(success=True)
