# src/looks_ledger/api/v1/endpoints/credits.py
"""Looks balance endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from looks_ledger.api.v1.dependencies import CreditServiceDep, CurrentUserIdDep, SessionDep
from looks_ledger.schemas.credits import (
    AddCreditsRequest,
    AddCreditsResponse,
    BalanceResponse,
    SpendResponse,
)

router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("", response_model=BalanceResponse)
async def get_balance(
    user_id: CurrentUserIdDep,
    db: SessionDep,
    credits: CreditServiceDep,
) -> BalanceResponse:
    """Return the caller's Looks balance."""
    return BalanceResponse(balance=credits.get_balance(db, user_id))


@router.post(
    "/spend",
    response_model=SpendResponse,
    responses={status.HTTP_402_PAYMENT_REQUIRED: {"description": "Insufficient credits"}},
)
async def spend_credit(
    user_id: CurrentUserIdDep,
    db: SessionDep,
    credits: CreditServiceDep,
) -> SpendResponse | JSONResponse:
    """Spend one Look before a generation starts."""
    result = credits.spend(db, user_id)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            content={
                "success": False,
                "balance": result.new_balance,
                "error": "Insufficient credits",
            },
        )
    return SpendResponse(success=True, new_balance=result.new_balance)


@router.post("/add", response_model=AddCreditsResponse)
async def add_credits(
    user_id: CurrentUserIdDep,
    db: SessionDep,
    credits: CreditServiceDep,
    payload: AddCreditsRequest | None = None,
) -> AddCreditsResponse:
    """Credit Looks after a verified purchase."""
    amount = payload.amount if payload is not None else 1
    result = credits.add(db, user_id, amount)
    return AddCreditsResponse(success=result.success, new_balance=result.new_balance, added=amount)
