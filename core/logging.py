"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire application.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Quote service started")

    log = get_logger(__name__)
    log.debug("Cache hit for AAPL")

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] quotegate Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger("quotegate")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, 'log_level') else "INFO"
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger named "quotegate.<name>"

    Example:
        # In providers/yahoo/api_client.py:
        logger = get_logger(__name__)  # "quotegate.providers.yahoo.api_client"
    """
    return logging.getLogger(f"quotegate.{name}")


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(provider: str, endpoint: str, params: dict = None) -> None:
    """
    Log an upstream API request with consistent formatting.

    Secrets are masked: any ``apikey`` parameter is replaced with ``[API_KEY]``.

    Example:
        >>> log_api_request("yahoo", "/v8/finance/chart/AAPL", {"interval": "1d"})
        [DEBUG] API Request: yahoo /v8/finance/chart/AAPL | Params: {'interval': '1d'}
    """
    if params:
        safe_params = {k: ("[API_KEY]" if k.lower() == "apikey" else v) for k, v in params.items()}
        logger.debug(f"API Request: {provider} {endpoint} | Params: {safe_params}")
    else:
        logger.debug(f"API Request: {provider} {endpoint}")


def log_api_response(provider: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an upstream API response with status and timing information.

    Example:
        >>> log_api_response("fmp", "/historical-price-full/AAPL", 200, 0.342)
        [DEBUG] API Response: fmp /historical-price-full/AAPL | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {provider} {endpoint} | Status: {status}{time_str}")


def log_cache_event(event: str, symbol: str = None, details: str = None) -> None:
    """
    Log a cache or single-flight event with consistent formatting.

    Evictions are logged at INFO, everything else at DEBUG.

    Example:
        >>> log_cache_event("hit", "AAPL")
        [DEBUG] Cache: hit | Symbol: AAPL
    """
    symbol_str = f" | Symbol: {symbol}" if symbol else ""
    details_str = f" | {details}" if details else ""

    level = logging.INFO if event in ("evict", "cleanup") else logging.DEBUG
    logger.log(level, f"Cache: {event}{symbol_str}{details_str}")


logger.debug("Logging system initialized")
