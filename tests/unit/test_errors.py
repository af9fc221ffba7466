"""
Unit Tests for the Error Taxonomy

Verifies kinds, HTTP status mapping, serialized bodies and the translation
of upstream HTTP statuses into typed errors.

Run with:
    pytest tests/unit/test_errors.py -v
"""

import pytest

from core.errors import (
    ErrorKind,
    InvalidSymbolError,
    QuoteLookupError,
    RateLimitedError,
    UpstreamAuthError,
    UpstreamGenericError,
    error_for_status,
    status_code_for,
)


class TestStatusMapping:
    """Each kind maps to exactly one status"""

    @pytest.mark.parametrize(
        "error_cls,kind,status",
        [
            (InvalidSymbolError, ErrorKind.INVALID_SYMBOL, 400),
            (RateLimitedError, ErrorKind.RATE_LIMITED, 429),
            (UpstreamAuthError, ErrorKind.UPSTREAM_AUTH_ERROR, 401),
            (UpstreamGenericError, ErrorKind.UPSTREAM_GENERIC_ERROR, 500),
        ],
    )
    def test_kind_and_status(self, error_cls, kind, status):
        error = error_cls("boom")

        assert isinstance(error, QuoteLookupError)
        assert error.kind is kind
        assert error.status_code == status

    def test_unknown_kind_maps_to_500(self):
        assert status_code_for("SOMETHING_ELSE") == 500


class TestErrorBody:
    """Tests for to_dict() and retry hints"""

    def test_to_dict_shape(self):
        error = InvalidSymbolError("Stock symbol is required")

        assert error.to_dict() == {
            "type": "INVALID_SYMBOL",
            "message": "Stock symbol is required",
            "can_retry": False,
        }

    def test_rate_limited_is_retryable_by_default(self):
        assert RateLimitedError("slow down").can_retry is True

    def test_can_retry_override(self):
        error = UpstreamGenericError("Request timeout. Please check your connection.", can_retry=True)

        assert error.can_retry is True
        assert str(error) == "Request timeout. Please check your connection."


class TestErrorForStatus:
    """Tests for upstream status translation"""

    def test_429_is_rate_limited(self):
        error = error_for_status(429, "Yahoo Finance")

        assert isinstance(error, RateLimitedError)
        assert "Yahoo Finance" in error.message

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_statuses(self, status):
        assert isinstance(error_for_status(status, "FMP"), UpstreamAuthError)

    def test_404_with_symbol_is_invalid_symbol(self):
        error = error_for_status(404, "Yahoo Finance", symbol="ZZZZ")

        assert isinstance(error, InvalidSymbolError)
        assert error.message == "Symbol not found: ZZZZ"

    def test_404_without_symbol_is_generic(self):
        assert isinstance(error_for_status(404, "Yahoo Finance"), UpstreamGenericError)

    def test_server_error_is_generic_and_retryable(self):
        error = error_for_status(503, "FMP")

        assert isinstance(error, UpstreamGenericError)
        assert error.can_retry is True
        assert "503" in error.message
