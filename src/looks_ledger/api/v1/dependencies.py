"""Shared API dependencies for authentication and service wiring."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from looks_ledger.core.settings import settings
from looks_ledger.db.session import get_db
from looks_ledger.services.billing import BillingProvider, get_billing_provider
from looks_ledger.services.credits import CreditLedgerService, get_credit_service
from looks_ledger.services.errors import UnauthorizedError
from looks_ledger.services.rate_limit import RateLimiter, get_rate_limiter

# HTTP Bearer scheme; missing credentials are reported as 401, not 403.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def decode_user_id(token: str) -> str:
    """Validate an identity-provider JWT and return its subject.

    Raises:
        UnauthorizedError: If the token is invalid, expired or has no subject.
    """
    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience or None,
            options=options,
        )
    except JWTError as err:
        raise UnauthorizedError("Could not validate credentials") from err

    subject = payload.get("sub")
    if not subject or not isinstance(subject, str):
        raise UnauthorizedError("Could not validate credentials")
    return subject


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Return the authenticated user id from the bearer token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Missing authorization header")
    return decode_user_id(credentials.credentials)


def get_billing_provider_dep() -> BillingProvider:
    """Return the billing provider used for server-side verification."""
    return get_billing_provider()


def get_credit_service_dep() -> CreditLedgerService:
    """Return the credit ledger service."""
    return get_credit_service()


def get_rate_limiter_dep() -> RateLimiter:
    """Return the generation rate limiter."""
    return get_rate_limiter()


# Type aliases for common dependencies
CurrentUserIdDep = Annotated[str, Depends(get_current_user_id)]
BillingProviderDep = Annotated[BillingProvider, Depends(get_billing_provider_dep)]
CreditServiceDep = Annotated[CreditLedgerService, Depends(get_credit_service_dep)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter_dep)]
