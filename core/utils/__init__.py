"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: Timestamp conversion and normalization utilities
    - symbols: Ticker symbol validation and normalization
"""

from core.utils.time import to_utc_datetime
from core.utils.symbols import normalize_symbol

__all__ = ["to_utc_datetime", "normalize_symbol"]
