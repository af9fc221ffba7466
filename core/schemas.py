"""
Normalized Data Schemas

This module defines Pydantic models for quote data and for the monitoring
payloads exposed by the API.

Key Principle:
    Regardless of which provider the data comes from (Yahoo Finance, Financial
    Modeling Prep), it gets normalized into these schemas, so the cache and the
    API consumers work with a single data structure.

Models:
    - QuoteDataPoint: One daily bar with derived change metrics
    - QuoteRecord: The payload cached and returned per symbol
    - StockSuggestion: One search result
    - ErrorResponse: Body of every typed error response
    - CacheStats / CacheConfig: Cache monitoring payloads
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict


# ============================================
# Quote Data
# ============================================

class QuoteDataPoint(BaseModel):
    """
    One daily price bar.

    Attributes:
        date: Trading day (YYYY-MM-DD)
        open/high/low/close: Prices for the day
        adj_close: Close adjusted for splits and dividends
        volume: Shares traded
        unadjusted_volume: Volume before split adjustment
        change: Close minus previous close
        change_percent: change as a percentage of previous close
        vwap: Volume-weighted average price (approximated when missing)
        label: Display label for the day
        change_over_time: change_percent as a fraction
    """

    date: str = Field(..., description="Trading day (YYYY-MM-DD)", examples=["2024-01-02"])

    open: float = Field(..., ge=0, description="Opening price")
    high: float = Field(..., ge=0, description="Highest price of the day")
    low: float = Field(..., ge=0, description="Lowest price of the day")
    close: float = Field(..., ge=0, description="Closing price")
    adj_close: float = Field(..., ge=0, description="Adjusted closing price")

    volume: float = Field(..., ge=0, description="Shares traded")
    unadjusted_volume: float = Field(..., ge=0, description="Unadjusted shares traded")

    change: float = Field(default=0.0, description="Change versus previous close")
    change_percent: float = Field(default=0.0, description="Percent change versus previous close")
    vwap: float = Field(..., ge=0, description="Volume-weighted average price")
    label: str = Field(..., description="Display label", examples=["January 2, 24"])
    change_over_time: float = Field(default=0.0, description="Fractional change versus previous close")


class QuoteRecord(BaseModel):
    """
    Quote payload for one symbol.

    This is what the cache stores and what GET /api/stock/{symbol} returns.
    The cache and single-flight layers never look inside it.

    Attributes:
        symbol: Uppercase ticker symbol
        historical: Daily bars, newest first
        data_points: Number of bars in ``historical``
    """

    symbol: str = Field(..., description="Ticker symbol in uppercase", examples=["AAPL"])
    historical: List[QuoteDataPoint] = Field(default_factory=list, description="Daily bars, newest first")
    data_points: int = Field(..., ge=0, description="Number of bars")

    @field_validator('symbol')
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.strip().upper()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "symbol": "AAPL",
                "historical": [
                    {
                        "date": "2024-01-03",
                        "open": 184.22,
                        "high": 185.88,
                        "low": 183.43,
                        "close": 184.25,
                        "adj_close": 184.25,
                        "volume": 58414500,
                        "unadjusted_volume": 58414500,
                        "change": -1.39,
                        "change_percent": -0.75,
                        "vwap": 184.52,
                        "label": "January 3, 24",
                        "change_over_time": -0.0075
                    }
                ],
                "data_points": 1
            }
        }
    )


# ============================================
# Search
# ============================================

class StockSuggestion(BaseModel):
    """A single search suggestion."""

    symbol: str
    name: str
    type: Literal["stock", "etf"] = "stock"
    category: str = "Unknown"
    exchange: Optional[str] = None
    reason: str = ""


class SearchResponse(BaseModel):
    results: List[StockSuggestion] = Field(default_factory=list)
    query: Optional[str] = None
    timestamp: Optional[str] = None


# ============================================
# Errors
# ============================================

class ErrorResponse(BaseModel):
    """Body of a typed error response (see core.errors)."""

    type: str = Field(..., examples=["RATE_LIMITED"])
    message: str
    can_retry: bool


# ============================================
# Cache Monitoring
# ============================================

class CacheStats(BaseModel):
    """
    Cache counters.

    Attributes:
        hits: Lookups served from cache
        misses: Lookups that found nothing fresh
        total_requests: hits + misses
        hit_rate: Percentage of lookups served from cache
        entries: Entries currently stored (fresh or not yet purged)
        memory_usage: Rough size of stored payloads in bytes
    """

    hits: int = 0
    misses: int = 0
    total_requests: int = 0
    hit_rate: float = 0.0
    entries: int = 0
    memory_usage: int = 0


class CacheConfig(BaseModel):
    ttl: float = Field(..., description="Freshness horizon in seconds")
    max_size: int = Field(..., description="Maximum entries (0 = unbounded)")
    cleanup_interval: float = Field(..., description="Seconds between expired-entry sweeps")
