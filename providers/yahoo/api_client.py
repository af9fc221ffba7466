"""
Yahoo Finance REST API Client

This module provides an async HTTP client (httpx) for the public Yahoo Finance
query API. It handles:
- HTTP requests with retry logic
- Rate limit handling (429 and 5xx errors) with linear backoff
- Mapping upstream failures to typed lookup errors
- Data normalization to our schemas

Endpoints Used:
    GET /v8/finance/chart/{symbol}   - Daily bars for a date range
    GET /v1/finance/search           - Free-text symbol search

Usage:
    async with YahooAPIClient() as client:
        record = await client.get_quote("AAPL")
        suggestions = await client.search("apple")
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx

from core.errors import (
    InvalidSymbolError,
    RETRYABLE_STATUSES,
    UpstreamGenericError,
    error_for_status,
)
from core.logging import get_logger, log_api_request, log_api_response
from core.schemas import QuoteDataPoint, QuoteRecord, StockSuggestion
from core.utils.time import current_utc_datetime, datetime_to_timestamp, to_utc_datetime, years_ago


PROVIDER_LABEL = "Yahoo Finance"


# ============================================
# Normalization Helpers
# ============================================

def _value_at(values: Optional[List[Any]], index: int) -> Optional[float]:
    if not values or index >= len(values):
        return None
    return values[index]


def format_label(day) -> str:
    """
    Display label for a trading day, e.g. "January 5, 24".

    Args:
        day: date or datetime
    """
    return f"{day.strftime('%B')} {day.day}, {day.strftime('%y')}"


def convert_bar(
    timestamp: int,
    open_: float,
    high: float,
    low: float,
    close: float,
    volume: Optional[float],
    adj_close: Optional[float] = None
) -> QuoteDataPoint:
    """
    Convert one Yahoo bar to a QuoteDataPoint.

    Prices are rounded to 2 decimals. Yahoo has no VWAP, so it is approximated
    as the typical price (high + low + close) / 3. Change fields start at 0 and
    are filled in by calculate_changes().
    """
    day = to_utc_datetime(timestamp)
    volume = volume or 0
    return QuoteDataPoint(
        date=day.date().isoformat(),
        open=round(open_, 2),
        high=round(high, 2),
        low=round(low, 2),
        close=round(close, 2),
        adj_close=round(adj_close if adj_close is not None else close, 2),
        volume=volume,
        unadjusted_volume=volume,
        vwap=round((high + low + close) / 3, 2),
        label=format_label(day),
    )


def calculate_changes(points: List[QuoteDataPoint]) -> List[QuoteDataPoint]:
    """
    Fill change, change_percent and change_over_time for bars sorted newest first.

    Each bar is compared with the next one in the list (the previous trading
    day). The oldest bar keeps zero change.
    """
    result = []
    for index, point in enumerate(points):
        if index == len(points) - 1:
            result.append(point)
            continue

        previous_close = points[index + 1].close
        change = round(point.close - previous_close, 2)
        change_percent = round((change / previous_close) * 100, 2) if previous_close else 0.0
        result.append(point.model_copy(update={
            "change": change,
            "change_percent": change_percent,
            "change_over_time": round(change_percent / 100, 4),
        }))
    return result


def parse_chart(payload: Any, symbol: str) -> QuoteRecord:
    """
    Normalize a /v8/finance/chart response into a QuoteRecord.

    Response Format:
        {
          "chart": {
            "result": [{
              "meta": {"symbol": "AAPL", ...},
              "timestamp": [1704205800, ...],
              "indicators": {
                "quote": [{"open": [...], "high": [...], "low": [...],
                           "close": [...], "volume": [...]}],
                "adjclose": [{"adjclose": [...]}]
              }
            }],
            "error": null
          }
        }

    Bars with a missing price (Yahoo reports null for halted days) are skipped.

    Raises:
        InvalidSymbolError: Yahoo reports an error or returns no bars
        UpstreamGenericError: Payload does not have the expected shape
    """
    chart = payload.get("chart") if isinstance(payload, dict) else None
    if not isinstance(chart, dict):
        raise UpstreamGenericError("Unexpected API response format.")

    if chart.get("error"):
        raise InvalidSymbolError(f"Symbol not found: {symbol}")

    results = chart.get("result") or []
    if not results:
        raise InvalidSymbolError(f"No data found for symbol: {symbol}")

    result = results[0]
    timestamps = result.get("timestamp") or []
    indicators = result.get("indicators") or {}
    quote = (indicators.get("quote") or [{}])[0]
    adj_closes = ((indicators.get("adjclose") or [{}])[0]).get("adjclose")

    points = []
    for index, ts in enumerate(timestamps):
        bar = [_value_at(quote.get(field), index) for field in ("open", "high", "low", "close")]
        if any(value is None for value in bar):
            continue
        points.append(convert_bar(
            ts, *bar,
            volume=_value_at(quote.get("volume"), index),
            adj_close=_value_at(adj_closes, index),
        ))

    if not points:
        raise InvalidSymbolError(f"No data found for symbol: {symbol}")

    points.sort(key=lambda p: p.date, reverse=True)
    points = calculate_changes(points)

    meta_symbol = (result.get("meta") or {}).get("symbol") or symbol
    return QuoteRecord(symbol=meta_symbol, historical=points, data_points=len(points))


def parse_search(payload: Any, limit: int = 10) -> List[StockSuggestion]:
    """
    Normalize a /v1/finance/search response into suggestions.

    Only quotes that have a symbol and at least one name are kept, capped at
    ``limit``.
    """
    quotes = payload.get("quotes") if isinstance(payload, dict) else None
    suggestions = []
    for quote in quotes or []:
        symbol = quote.get("symbol")
        short_name = quote.get("shortname") or quote.get("shortName")
        long_name = quote.get("longname") or quote.get("longName")
        if not symbol or not (short_name or long_name):
            continue

        quote_type = quote.get("quoteType")
        exchange = quote.get("exchange")
        suggestions.append(StockSuggestion(
            symbol=symbol,
            name=short_name or long_name,
            type="etf" if quote_type == "ETF" else "stock",
            category=quote.get("sector") or "Unknown",
            exchange=exchange,
            reason=f"{exchange or 'Unknown'} • {quote_type or 'Stock'}",
        ))
        if len(suggestions) >= limit:
            break
    return suggestions


# ============================================
# API Client
# ============================================

class YahooAPIClient:
    """
    Async HTTP client for the Yahoo Finance query API.

    Attributes:
        base_url: API base URL
        timeout: Per-request timeout in seconds
        max_retries: Extra attempts after the first one for retryable failures
        retry_delay: Base delay; attempt N waits retry_delay * N seconds
        client: httpx.AsyncClient, created on context entry

    Example:
        >>> async with YahooAPIClient() as client:
        ...     record = await client.get_quote("MSFT")
        ...     print(record.data_points)
    """

    CHART_PATH = "/v8/finance/chart/{symbol}"
    SEARCH_PATH = "/v1/finance/search"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        history_years: Optional[int] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        from core.config import settings

        self.base_url = base_url or settings.yahoo_base_url
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.max_retries = max_retries if max_retries is not None else settings.upstream_max_retries
        self.retry_delay = retry_delay if retry_delay is not None else settings.upstream_retry_delay
        self.history_years = history_years if history_years is not None else settings.history_years
        self.user_agent = user_agent or settings.user_agent
        self._transport = transport
        self.client: Optional[httpx.AsyncClient] = None
        self.logger = get_logger(__name__)

    # ============================================
    # Context Manager for Client Management
    # ============================================

    async def __aenter__(self):
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Accept": "application/json", "User-Agent": self.user_agent},
            transport=self._transport,
        )
        self.logger.debug("YahooAPIClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.client:
            await self.client.aclose()
            self.client = None
            self.logger.debug("YahooAPIClient session closed")

    # ============================================
    # HTTP Request Handler with Retry Logic
    # ============================================

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None, symbol: Optional[str] = None) -> Any:
        """
        GET ``path`` and return decoded JSON.

        Retries timeouts, connection errors, 429 and 5xx up to ``max_retries``
        times with linear backoff. Other statuses fail immediately.

        Raises:
            RuntimeError: If the client is used outside ``async with``
            QuoteLookupError: Typed failure after the last attempt
        """
        if not self.client:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        last_error = None
        for attempt in range(self.max_retries + 1):
            log_api_request("yahoo", path, params)
            started = time.perf_counter()
            try:
                response = await self.client.get(path, params=params)
            except httpx.TimeoutException:
                self.logger.error(f"Timeout on {path} (attempt {attempt + 1}/{self.max_retries + 1})")
                last_error = UpstreamGenericError("Request timeout. Please check your connection.", can_retry=True)
            except httpx.RequestError as e:
                self.logger.error(f"Request failed on {path}: {e} (attempt {attempt + 1}/{self.max_retries + 1})")
                last_error = UpstreamGenericError(
                    "Network error connecting to Yahoo Finance. Please check your connection.", can_retry=True
                )
            else:
                log_api_response("yahoo", path, response.status_code, time.perf_counter() - started)
                if response.status_code == 200:
                    try:
                        return response.json()
                    except ValueError:
                        raise UpstreamGenericError("Unexpected API response format.")

                last_error = error_for_status(response.status_code, PROVIDER_LABEL, symbol)
                if response.status_code not in RETRYABLE_STATUSES:
                    self.logger.warning(f"HTTP {response.status_code} on {path}")
                    raise last_error

            if attempt < self.max_retries:
                delay = self.retry_delay * (attempt + 1)
                self.logger.warning(
                    f"Retrying {path} in {delay:.1f}s... (attempt {attempt + 2}/{self.max_retries + 1})"
                )
                await asyncio.sleep(delay)

        raise last_error

    # ============================================
    # API Methods
    # ============================================

    async def get_quote(self, symbol: str) -> QuoteRecord:
        """
        Fetch daily bars for the last ``history_years`` years.

        Args:
            symbol: Ticker symbol (e.g., "AAPL")

        Returns:
            QuoteRecord with bars sorted newest first
        """
        symbol = symbol.upper()
        end = current_utc_datetime()
        start = years_ago(self.history_years, end)
        params = {
            "period1": datetime_to_timestamp(start),
            "period2": datetime_to_timestamp(end),
            "interval": "1d",
            "events": "div,splits",
        }

        self.logger.info(f"Fetching Yahoo Finance data for {symbol} from {start.date()} to {end.date()}")
        payload = await self._get(self.CHART_PATH.format(symbol=symbol), params, symbol=symbol)
        record = parse_chart(payload, symbol)
        self.logger.info(f"Processed {record.data_points} data points for {record.symbol} from Yahoo Finance")
        return record

    async def search(self, query: str, limit: int = 10) -> List[StockSuggestion]:
        """
        Search for stocks and ETFs matching ``query``.

        Returns:
            Up to ``limit`` suggestions; empty list for a blank query
        """
        query = query.strip()
        if not query:
            return []

        payload = await self._get(self.SEARCH_PATH, {"q": query, "quotesCount": limit, "newsCount": 0})
        suggestions = parse_search(payload, limit)
        self.logger.info(f"Yahoo Finance search for '{query}' returned {len(suggestions)} results")
        return suggestions

    async def ping(self) -> bool:
        """Fetch a one-day AAPL chart; True if Yahoo answers."""
        try:
            await self._get(self.CHART_PATH.format(symbol="AAPL"), {"range": "1d", "interval": "1d"})
            return True
        except Exception as e:
            self.logger.error(f"Yahoo Finance health check failed: {e}")
            return False
