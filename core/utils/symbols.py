"""
Symbol normalization.

A symbol is trimmed and uppercased before it touches the cache or the
single-flight table, so "aapl", " AAPL " and "AAPL" share one key.
"""

from core.errors import InvalidSymbolError


def normalize_symbol(raw: str) -> str:
    """
    Trim and uppercase a ticker symbol.

    Raises:
        InvalidSymbolError: If the symbol is missing, not a string, or blank
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidSymbolError("Stock symbol is required")
    return raw.strip().upper()
