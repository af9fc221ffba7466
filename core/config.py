"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates all required settings
- Provides type-safe access to configuration values
- Converts comma-separated strings to lists (warm-up symbols, CORS origins)
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.quote_provider)
    print(settings.cache_ttl)
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


SUPPORTED_PROVIDERS = ("yahoo", "fmp")


class Settings(BaseSettings):
    """
    Application Settings

    This class defines all configuration parameters for the application.
    Values are automatically loaded from environment variables or .env file.

    Attributes:
        quote_provider: Upstream provider used for quote lookups ("yahoo" or "fmp")
        yahoo_base_url: Base URL for the Yahoo Finance query API
        fmp_base_url: Base URL for the Financial Modeling Prep v3 API
        fmp_api_key: Financial Modeling Prep API key (required when quote_provider is "fmp")
        history_years: How many years of daily history to request
        request_timeout: Timeout for a single HTTP request in seconds
        upstream_max_retries: Retry attempts inside a provider client
        upstream_retry_delay: Base delay between provider retries (linear backoff)
        fetch_timeout: Wall-clock bound on one upstream fetch, retries included
        cache_ttl: Freshness horizon of cached quotes in seconds
        cache_max_size: Maximum cached symbols (0 = unbounded)
        cache_cleanup_interval: Seconds between expired-entry sweeps
        cache_warm_symbols: Comma-separated symbols fetched at startup
        search_limit: Maximum number of search suggestions returned
    """

    # ============================================
    # Upstream Provider Configuration
    # ============================================

    quote_provider: str = Field(
        default="yahoo",
        description="Quote provider used for lookups (yahoo, fmp)"
    )

    yahoo_base_url: str = Field(
        default="https://query1.finance.yahoo.com",
        description="Yahoo Finance query API base URL"
    )

    fmp_base_url: str = Field(
        default="https://financialmodelingprep.com/api/v3",
        description="Financial Modeling Prep API base URL"
    )

    fmp_api_key: str = Field(
        default="",
        description="Financial Modeling Prep API key"
    )

    history_years: int = Field(
        default=2,
        description="Years of daily history requested per symbol"
    )

    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; quotegate/1.0)",
        description="User-Agent header sent to upstream providers"
    )

    # ============================================
    # Timeouts & Retries
    # ============================================

    request_timeout: float = Field(
        default=10.0,
        description="HTTP request timeout in seconds"
    )

    upstream_max_retries: int = Field(
        default=3,
        description="Retry attempts for throttled or failed upstream requests"
    )

    upstream_retry_delay: float = Field(
        default=1.0,
        description="Base retry delay in seconds (multiplied by attempt number)"
    )

    fetch_timeout: float = Field(
        default=30.0,
        description="Wall-clock timeout for one upstream fetch including retries"
    )

    # ============================================
    # Caching Configuration
    # ============================================

    cache_ttl: int = Field(
        default=3600,
        description="Cache freshness horizon in seconds"
    )

    cache_max_size: int = Field(
        default=1000,
        description="Maximum number of cached symbols (0 disables the bound)"
    )

    cache_cleanup_interval: int = Field(
        default=600,
        description="Interval between expired-entry sweeps in seconds"
    )

    cache_warm_symbols: str = Field(
        default="",
        description="Comma-separated symbols to pre-load at startup"
    )

    # ============================================
    # Search Configuration
    # ============================================

    search_limit: int = Field(
        default=10,
        description="Maximum number of search suggestions"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    # ============================================
    # Properties
    # ============================================

    @property
    def warm_symbols_list(self) -> List[str]:
        """
        Convert comma-separated warm-up symbols to a normalized list.

        Example:
            >>> settings.warm_symbols_list
            ['AAPL', 'MSFT']
        """
        return [s.strip().upper() for s in self.cache_warm_symbols.split(",") if s.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert comma-separated CORS origins string to a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def uses_api_key(self) -> bool:
        """True when the selected provider authenticates with an API key."""
        return self.quote_provider.lower() == "fmp"


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings to validate (defaults to the global instance)

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # logging.py imports config.py, so import lazily
    from core.logging import logger

    config = config or settings

    provider = config.quote_provider.lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Invalid QUOTE_PROVIDER: '{config.quote_provider}'. "
            f"Must be one of: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    if config.cache_ttl <= 0:
        raise ValueError(f"CACHE_TTL must be positive, got {config.cache_ttl}")

    if config.cache_max_size < 0:
        raise ValueError(f"CACHE_MAX_SIZE cannot be negative, got {config.cache_max_size}")

    if config.cache_cleanup_interval <= 0:
        raise ValueError(
            f"CACHE_CLEANUP_INTERVAL must be positive, got {config.cache_cleanup_interval}"
        )

    if config.request_timeout <= 0 or config.fetch_timeout <= 0:
        raise ValueError("REQUEST_TIMEOUT and FETCH_TIMEOUT must be positive")

    if config.upstream_max_retries < 0:
        raise ValueError(
            f"UPSTREAM_MAX_RETRIES cannot be negative, got {config.upstream_max_retries}"
        )

    if not (1 <= config.app_port <= 65535):
        raise ValueError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    if config.uses_api_key and not config.fmp_api_key:
        logger.warning("QUOTE_PROVIDER is 'fmp' but FMP_API_KEY is not set; lookups will fail with 401")

    logger.info("Configuration validated successfully")
    logger.info(f"Quote provider: {provider}")
    logger.info(f"Cache: TTL {config.cache_ttl}s, max {config.cache_max_size or 'unbounded'} entries")
    logger.info(f"Fetch timeout: {config.fetch_timeout}s")
    logger.info(f"Server: {config.app_host}:{config.app_port}")
    logger.info(f"Log level: {config.log_level.upper()}")
