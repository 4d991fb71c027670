"""Credit-related Pydantic schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AddCreditsRequest(BaseModel):
    """Body for adding Looks after a verified purchase."""

    amount: int = Field(default=1, ge=1, description="Looks to add; one entry pack grants 1.")


class SpendResponse(BaseModel):
    """Successful spend of one Look."""

    success: bool = True
    new_balance: int


class AddCreditsResponse(BaseModel):
    """Balance after a purchase was credited."""

    success: bool
    new_balance: int
    added: int


class BalanceResponse(BaseModel):
    """Current Looks balance."""

    balance: int
