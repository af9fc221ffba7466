"""
Financial Modeling Prep REST API Client

This module provides an async HTTP client (aiohttp) for the Financial Modeling
Prep v3 API. It handles:
- API key injection (``apikey`` query parameter)
- Retry logic for rate limits (429) and 5xx errors
- Mapping upstream failures to typed lookup errors
- Data normalization to our schemas

API Documentation:
    https://site.financialmodelingprep.com/developer/docs

Endpoints Used:
    GET /historical-price-full/{symbol}  - Daily end-of-day history
    GET /profile/{symbol}                - Company profile (health check)

Usage:
    async with FMPAPIClient(api_key="...") as client:
        record = await client.get_quote("AAPL")
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import aiohttp

from core.errors import (
    InvalidSymbolError,
    RETRYABLE_STATUSES,
    UpstreamAuthError,
    UpstreamGenericError,
    error_for_status,
)
from core.logging import get_logger, log_api_request, log_api_response
from core.schemas import QuoteDataPoint, QuoteRecord


PROVIDER_LABEL = "Financial Modeling Prep"


def convert_data_point(item: Dict[str, Any]) -> QuoteDataPoint:
    """
    Convert one FMP historical item to a QuoteDataPoint.

    Optional FMP fields fall back to sensible values: adjClose and vwap to
    close, unadjustedVolume to volume, change fields to 0, label to the date.
    """
    close = item["close"]
    volume = item.get("volume") or 0
    return QuoteDataPoint(
        date=item["date"],
        open=item["open"],
        high=item["high"],
        low=item["low"],
        close=close,
        adj_close=item.get("adjClose") or close,
        volume=volume,
        unadjusted_volume=item.get("unadjustedVolume") or volume,
        change=item.get("change") or 0,
        change_percent=item.get("changePercent") or 0,
        vwap=item.get("vwap") or close,
        label=item.get("label") or item["date"],
        change_over_time=item.get("changeOverTime") or 0,
    )


def parse_historical(payload: Any, symbol: str) -> QuoteRecord:
    """
    Normalize a /historical-price-full response into a QuoteRecord.

    Response Format:
        {"symbol": "AAPL", "historical": [{"date": "2024-01-03", "open": ..., ...}]}

    Error Formats:
        {"Error Message": "Invalid API KEY. ..."}
        {}                                        (unknown symbol)

    Raises:
        InvalidSymbolError: Provider error message, unknown symbol or no history
        UpstreamGenericError: Payload does not have the expected shape
    """
    if isinstance(payload, dict) and "Error Message" in payload:
        raise InvalidSymbolError(str(payload["Error Message"]))

    if payload == {} or payload == []:
        raise InvalidSymbolError(f"No data found for symbol: {symbol}")

    if not (isinstance(payload, dict) and payload.get("symbol") and isinstance(payload.get("historical"), list)):
        raise UpstreamGenericError("Unexpected API response format.")

    historical: List[Dict[str, Any]] = payload["historical"]
    if not historical:
        raise InvalidSymbolError(f"No data found for symbol: {symbol}")

    try:
        points = [convert_data_point(item) for item in historical]
    except (KeyError, TypeError, ValueError) as e:
        raise UpstreamGenericError("Unexpected API response format.") from e

    points.sort(key=lambda p: p.date, reverse=True)
    return QuoteRecord(symbol=payload["symbol"], historical=points, data_points=len(points))


class FMPAPIClient:
    """
    Async HTTP client for the Financial Modeling Prep API.

    Attributes:
        api_key: FMP API key (required for every endpoint)
        base_url: API base URL
        timeout: Per-request timeout in seconds
        max_retries: Extra attempts after the first one for retryable failures
        retry_delay: Base delay; attempt N waits retry_delay * N seconds
        session: aiohttp ClientSession, created on context entry

    Example:
        >>> async with FMPAPIClient(api_key="demo") as client:
        ...     record = await client.get_quote("AAPL")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        user_agent: Optional[str] = None
    ):
        from core.config import settings

        self.api_key = api_key if api_key is not None else settings.fmp_api_key
        self.base_url = base_url or settings.fmp_base_url
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.max_retries = max_retries if max_retries is not None else settings.upstream_max_retries
        self.retry_delay = retry_delay if retry_delay is not None else settings.upstream_retry_delay
        self.user_agent = user_agent or settings.user_agent
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        self.logger.debug("FMPAPIClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug("FMPAPIClient session closed")

    # ============================================
    # HTTP Request Handler with Retry Logic
    # ============================================

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        symbol: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> Any:
        """
        GET ``path`` with the API key and return decoded JSON.

        Raises:
            UpstreamAuthError: If no API key is configured
            RuntimeError: If the client is used outside ``async with``
            QuoteLookupError: Typed failure after the last attempt
        """
        if not self.api_key:
            raise UpstreamAuthError(
                "FMP API key is required. Please set FMP_API_KEY in your environment variables."
            )
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        url = f"{self.base_url}{path}"
        query = dict(params or {})
        query["apikey"] = self.api_key
        headers = {"Accept": "application/json", "User-Agent": self.user_agent}
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.timeout)

        last_error = None
        for attempt in range(self.max_retries + 1):
            log_api_request("fmp", path, query)
            started = time.perf_counter()
            try:
                async with self.session.get(url, params=query, headers=headers, timeout=client_timeout) as resp:
                    log_api_response("fmp", path, resp.status, time.perf_counter() - started)

                    if resp.status == 200:
                        try:
                            return await resp.json(content_type=None)
                        except ValueError:
                            raise UpstreamGenericError("Unexpected API response format.")

                    last_error = error_for_status(resp.status, PROVIDER_LABEL, symbol)
                    if resp.status not in RETRYABLE_STATUSES:
                        text = await resp.text()
                        self.logger.error(f"HTTP {resp.status} on {path}: {text[:200]}")
                        raise last_error

            except asyncio.TimeoutError:
                self.logger.error(f"Timeout on {path} (attempt {attempt + 1}/{self.max_retries + 1})")
                last_error = UpstreamGenericError("Request timeout. Please check your connection.", can_retry=True)

            except aiohttp.ClientError as e:
                self.logger.error(f"Request failed on {path}: {e} (attempt {attempt + 1}/{self.max_retries + 1})")
                last_error = UpstreamGenericError(
                    "Failed to fetch stock data. Please check your connection.", can_retry=True
                )

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
        Fetch full daily history for ``symbol``.

        Returns:
            QuoteRecord with bars sorted newest first
        """
        symbol = symbol.upper()
        self.logger.info(f"Fetching FMP data for {symbol}")
        payload = await self._get(f"/historical-price-full/{symbol}", symbol=symbol)
        record = parse_historical(payload, symbol)
        self.logger.info(f"Fetched {record.data_points} data points for {record.symbol} from FMP")
        return record

    async def ping(self) -> bool:
        """Fetch the AAPL profile with a short timeout; True if FMP answers."""
        try:
            await self._get("/profile/AAPL", timeout=5)
            return True
        except Exception as e:
            self.logger.error(f"FMP API health check failed: {e}")
            return False
