"""
Typed Quote Lookup Errors

Every failure a quote lookup can produce is one of four kinds. Each kind maps
to exactly one HTTP status code, and every error carries a human-readable
message plus a ``can_retry`` hint for the caller.

    Kind                    Status  Retryable
    ----------------------  ------  ---------------------------
    INVALID_SYMBOL          400     no
    RATE_LIMITED            429     yes (after backoff)
    UPSTREAM_AUTH_ERROR     401     no
    UPSTREAM_GENERIC_ERROR  500     depends on the cause

Errors are raised by the provider clients and by input validation, and are
rendered by the FastAPI exception handler in ``app/main.py``. They are never
cached.
"""

from enum import Enum
from typing import Dict, Any


class ErrorKind(str, Enum):
    """Error taxonomy for quote lookups."""

    INVALID_SYMBOL = "INVALID_SYMBOL"
    RATE_LIMITED = "RATE_LIMITED"
    UPSTREAM_AUTH_ERROR = "UPSTREAM_AUTH_ERROR"
    UPSTREAM_GENERIC_ERROR = "UPSTREAM_GENERIC_ERROR"


STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_SYMBOL: 400,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPSTREAM_AUTH_ERROR: 401,
    ErrorKind.UPSTREAM_GENERIC_ERROR: 500,
}


def status_code_for(kind: ErrorKind) -> int:
    """HTTP status for an error kind; unknown kinds map to 500."""
    return STATUS_CODES.get(kind, 500)


class QuoteLookupError(Exception):
    """
    Base class for all typed lookup failures.

    Attributes:
        kind: One of ErrorKind
        message: Human-readable description, safe to show to API clients
        can_retry: Whether repeating the request later may succeed
    """

    kind: ErrorKind = ErrorKind.UPSTREAM_GENERIC_ERROR
    default_can_retry: bool = False

    def __init__(self, message: str, can_retry: bool = None):
        super().__init__(message)
        self.message = message
        self.can_retry = self.default_can_retry if can_retry is None else can_retry

    @property
    def status_code(self) -> int:
        return status_code_for(self.kind)

    def to_dict(self) -> Dict[str, Any]:
        """Structured error body returned to API clients."""
        return {
            "type": self.kind.value,
            "message": self.message,
            "can_retry": self.can_retry,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, message={self.message!r}, can_retry={self.can_retry})"


class InvalidSymbolError(QuoteLookupError):
    """Empty symbol, or a symbol the provider does not know."""

    kind = ErrorKind.INVALID_SYMBOL


class RateLimitedError(QuoteLookupError):
    """The provider is throttling us."""

    kind = ErrorKind.RATE_LIMITED
    default_can_retry = True


class UpstreamAuthError(QuoteLookupError):
    """Missing or rejected provider credentials."""

    kind = ErrorKind.UPSTREAM_AUTH_ERROR


class UpstreamGenericError(QuoteLookupError):
    """Any other provider failure: network, timeout, bad payload, 5xx."""

    kind = ErrorKind.UPSTREAM_GENERIC_ERROR


# ============================================
# HTTP Status Mapping (provider side)
# ============================================

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


def error_for_status(status: int, provider: str, symbol: str = None) -> QuoteLookupError:
    """
    Translate a non-2xx upstream HTTP status into a typed error.

    Args:
        status: HTTP status returned by the provider
        provider: Human-readable provider name used in messages
        symbol: Symbol being fetched, if any

    Example:
        >>> error_for_status(429, "Yahoo Finance")
        RateLimitedError(kind=RATE_LIMITED, message='Yahoo Finance rate limit exceeded. Please try again later.', can_retry=True)
    """
    if status == 429:
        return RateLimitedError(f"{provider} rate limit exceeded. Please try again later.")
    if status in (401, 403):
        return UpstreamAuthError("Invalid API key or insufficient permissions.")
    if status == 404 and symbol:
        return InvalidSymbolError(f"Symbol not found: {symbol}")
    return UpstreamGenericError(f"{provider} returned HTTP {status}", can_retry=True)
