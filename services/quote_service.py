"""
Quote Lookup Service

Entry point for every quote lookup. Per request:

    Start -> CacheCheck -> HitServed
                        -> MissFetch -> Served | Failed

1. Validate and normalize the symbol (blank input fails with
   InvalidSymbolError before any shared state is touched).
2. Serve a fresh cache entry if there is one.
3. Otherwise join or lead a single-flight fetch through the provider.
4. Cache successful results; propagate typed failures unchanged and never
   cache them.

The service owns its cache and its in-flight table. The FastAPI app creates
one instance at startup; tests create as many independent ones as they like.

It also runs a background sweep that purges expired cache entries every
``cleanup_interval`` seconds, and can pre-load ("warm") a list of symbols.
"""

import asyncio
import contextlib
from typing import Dict, Any, List, Optional

from core.errors import QuoteLookupError
from core.logging import get_logger
from core.provider_interface import QuoteProvider
from core.schemas import QuoteRecord, StockSuggestion
from core.utils.symbols import normalize_symbol
from services.single_flight import SingleFlight
from storage.quote_cache import QuoteCache


class QuoteService:
    """
    Cache + single-flight front for a QuoteProvider.

    Args:
        provider: Upstream provider used on cache misses
        cache: Cache store (a default QuoteCache when omitted)
        flight: Single-flight coordinator (a default SingleFlight when omitted)
        search_provider: Provider used for search (defaults to ``provider``)
        cleanup_interval: Seconds between expired-entry sweeps

    Example:
        >>> service = QuoteService(YahooProvider())
        >>> record = await service.lookup("aapl")
        >>> record.symbol
        'AAPL'
    """

    def __init__(
        self,
        provider: QuoteProvider,
        cache: Optional[QuoteCache] = None,
        flight: Optional[SingleFlight] = None,
        search_provider: Optional[QuoteProvider] = None,
        cleanup_interval: Optional[float] = None
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else QuoteCache()
        self.flight = flight if flight is not None else SingleFlight()
        self.search_provider = search_provider if search_provider is not None else provider
        self.cleanup_interval = cleanup_interval or self.cache.cleanup_interval
        self._logger = get_logger(__name__)
        self._running = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    # ============================================
    # Lookup
    # ============================================

    async def lookup(self, raw_symbol: str) -> QuoteRecord:
        """
        Return the quote record for ``raw_symbol``.

        Raises:
            InvalidSymbolError: Blank input, or the provider does not know the symbol
            RateLimitedError / UpstreamAuthError / UpstreamGenericError:
                Provider failures, shared by every concurrent caller
        """
        symbol = normalize_symbol(raw_symbol)

        cached = self.cache.get(symbol)
        if cached is not None:
            return cached

        try:
            record = await self.flight.acquire_or_join(symbol, self.provider.fetch_quote)
        except QuoteLookupError as e:
            self._logger.warning(f"Lookup failed for {symbol}: {e.kind.value} - {e.message}")
            raise

        self.cache.set(symbol, record)
        return record

    async def search(self, query: str) -> List[StockSuggestion]:
        """
        Free-text symbol search.

        A blank query returns an empty list without calling the provider.
        Provider failures are logged and also yield an empty list.
        """
        if not query or not query.strip():
            return []

        self._logger.info(f"Search request for: '{query.strip()}'")
        try:
            results = await self.search_provider.search(query.strip())
        except QuoteLookupError as e:
            self._logger.error(f"Search failed for '{query.strip()}': {e.kind.value} - {e.message}")
            return []
        self._logger.info(f"Search returned {len(results)} results")
        return results

    async def warm_cache(self, symbols: List[str]) -> int:
        """
        Pre-load symbols that are not already cached.

        Lookups run concurrently through the normal path, so they share
        in-flight fetches with live traffic. Failures are logged and skipped.

        Returns:
            Number of requested symbols cached afterwards
        """
        requested = []
        for raw in symbols:
            try:
                symbol = normalize_symbol(raw)
            except QuoteLookupError:
                self._logger.warning(f"Skipping invalid warm-up symbol: {raw!r}")
                continue
            if symbol not in requested:
                requested.append(symbol)

        pending = [s for s in requested if not self.cache.has(s)]
        self._logger.info(f"Warming cache with {len(pending)} symbols...")
        results = await asyncio.gather(*(self.lookup(s) for s in pending), return_exceptions=True)
        for symbol, result in zip(pending, results):
            if isinstance(result, Exception):
                self._logger.warning(f"Failed to warm cache for {symbol}: {result}")

        self._logger.info(f"Cache warming completed. {len(self.cache)} symbols cached.")
        return sum(1 for s in requested if self.cache.has(s))

    # ============================================
    # Cache Administration
    # ============================================

    def invalidate(self, raw_symbol: str) -> bool:
        return self.cache.delete(normalize_symbol(raw_symbol))

    def clear(self) -> None:
        self.cache.clear()

    def cleanup(self) -> int:
        return self.cache.cleanup()

    def info(self) -> Dict[str, Any]:
        """Cache and in-flight state for monitoring endpoints."""
        return {
            "stats": self.cache.stats().model_dump(),
            "config": self.cache.config.model_dump(),
            "cached_symbols": self.cache.cached_symbols(),
            "in_flight": self.flight.stats(),
        }

    # ============================================
    # Background Cleanup
    # ============================================

    async def start(self) -> None:
        if self._running.is_set():
            return
        self._running.set()
        self._logger.info(f"Starting cache cleanup loop (every {self.cleanup_interval}s)")
        self._task = asyncio.create_task(self._cleanup_loop(), name="quote_cache_cleanup")

    async def stop(self) -> None:
        if not self._running.is_set():
            return
        self._logger.info("Stopping cache cleanup loop...")
        self._running.clear()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    async def _cleanup_loop(self) -> None:
        while self._running.is_set():
            await asyncio.sleep(self.cleanup_interval)
            try:
                removed = self.cache.cleanup()
                if removed:
                    self._logger.info(f"Cache cleanup removed {removed} expired entries")
            except Exception as e:
                self._logger.error(f"Cache cleanup error: {e}")
