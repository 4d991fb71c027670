"""Error taxonomy shared by the ledger services and the HTTP layer."""

from __future__ import annotations


class LedgerError(RuntimeError):
    """Base exception for ledger failures that map onto an HTTP status.

    Business outcomes such as insufficient credits or a reached rate limit
    are returned as results, not raised.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthorizedError(LedgerError):
    """Raised when the bearer credential is missing or invalid."""

    status_code = 401


class InvalidInputError(LedgerError):
    """Raised for malformed requests the client must fix before resending."""

    status_code = 400


class InvalidAmountError(InvalidInputError):
    """Raised when a credit amount is not a positive integer."""


class UpstreamUnavailableError(LedgerError):
    """Raised when the billing provider cannot give a usable answer."""

    status_code = 503

    def __init__(self, message: str, *, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


class PersistenceError(LedgerError):
    """Raised on genuine storage failures; never retried automatically."""

    status_code = 500
