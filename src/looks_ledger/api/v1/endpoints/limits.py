# src/looks_ledger/api/v1/endpoints/limits.py
"""Rolling generation limit endpoint."""

from fastapi import APIRouter

from looks_ledger.api.v1.dependencies import CurrentUserIdDep, RateLimiterDep, SessionDep
from looks_ledger.schemas.limits import DailyLimitRequest, DailyLimitResponse

router = APIRouter(prefix="/limits", tags=["limits"])


@router.post("/daily", response_model=DailyLimitResponse, response_model_exclude_none=True)
async def check_daily_limit(
    user_id: CurrentUserIdDep,
    db: SessionDep,
    limiter: RateLimiterDep,
    payload: DailyLimitRequest | None = None,
) -> DailyLimitResponse:
    """Report whether the caller may generate, failing open on store errors."""
    action = payload.action if payload is not None else "check"
    status = limiter.check(db, user_id, action=action)
    return DailyLimitResponse(**status.as_dict())
