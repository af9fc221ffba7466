"""
Unit Tests for the Quote Lookup Service

These tests drive QuoteService end to end against a fake provider:
- Symbol normalization and validation
- Cache hits, misses and expiry
- Single-flight sharing of upstream fetches
- Typed failures are propagated and never cached
- Search, cache warming and the background cleanup loop

Run with:
    pytest tests/unit/test_quote_service.py -v
"""

import asyncio

import pytest
import pytest_asyncio

from core.errors import (
    ErrorKind,
    InvalidSymbolError,
    RateLimitedError,
    UpstreamAuthError,
)
from services.quote_service import QuoteService
from services.single_flight import SingleFlight
from storage.quote_cache import QuoteCache
from tests.unit.conftest import FailingSearchProvider, FakeProvider, make_record, settle


@pytest.fixture
def cache(clock):
    return QuoteCache(ttl_seconds=60, max_size=100, clock=clock)


@pytest_asyncio.fixture
async def service(provider, cache):
    svc = QuoteService(provider, cache=cache, flight=SingleFlight(fetch_timeout=5))
    yield svc
    await svc.stop()


class TestConstruction:
    """Tests for collaborator injection"""

    def test_injected_empty_cache_is_kept(self, provider, clock):
        """Verify an empty cache is used as given, not replaced by a default"""
        cache = QuoteCache(ttl_seconds=60, max_size=5, clock=clock)

        svc = QuoteService(provider, cache=cache)

        assert svc.cache is cache
        assert svc.cache.config.ttl == 60
        assert svc.cache.config.max_size == 5


class TestLookup:
    """Tests for the lookup path"""

    @pytest.mark.asyncio
    async def test_lowercase_symbol_is_normalized_and_cached(self, service, provider):
        """Verify 'aapl' fetches AAPL once and the second lookup is a cache hit"""
        first = await service.lookup("aapl")
        second = await service.lookup("AAPL")

        assert provider.calls == ["AAPL"]
        assert first.symbol == "AAPL"
        assert second is first

        stats = service.cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1

    @pytest.mark.asyncio
    async def test_blank_symbol_rejected_without_side_effects(self, service, provider):
        """Verify whitespace input fails before touching cache, flight or provider"""
        with pytest.raises(InvalidSymbolError) as exc_info:
            await service.lookup("   ")

        assert exc_info.value.status_code == 400
        assert provider.calls == []
        assert service.cache.stats().total_requests == 0
        assert service.flight.stats()["leaders"] == 0

    @pytest.mark.asyncio
    async def test_non_string_symbol_rejected(self, service, provider):
        with pytest.raises(InvalidSymbolError):
            await service.lookup(None)

        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_expired_entry_is_refetched(self, service, provider, clock):
        first = await service.lookup("AAPL")
        clock.advance(61)
        second = await service.lookup("AAPL")

        assert provider.calls == ["AAPL", "AAPL"]
        assert second is not first

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(self, service, provider):
        """Verify concurrent lookups for one symbol make one upstream call"""
        provider.gate = asyncio.Event()

        tasks = [asyncio.create_task(service.lookup("msft")) for _ in range(8)]
        await settle()
        provider.gate.set()
        results = await asyncio.gather(*tasks)

        assert provider.calls == ["MSFT"]
        assert all(result is results[0] for result in results)
        assert service.cache.has("MSFT")


class TestFailures:
    """Tests for typed failure handling"""

    @pytest.mark.asyncio
    async def test_rate_limit_propagates_and_is_not_cached(self, service, provider):
        provider.error = RateLimitedError("Yahoo Finance rate limit exceeded. Please try again later.")

        with pytest.raises(RateLimitedError) as exc_info:
            await service.lookup("AAPL")

        assert exc_info.value.status_code == 429
        assert exc_info.value.can_retry is True
        assert service.cache.has("AAPL") is False

    @pytest.mark.asyncio
    async def test_failure_then_success_fetches_again(self, service, provider):
        provider.error = UpstreamAuthError("Invalid API key or insufficient permissions.")
        with pytest.raises(UpstreamAuthError):
            await service.lookup("AAPL")

        provider.error = None
        record = await service.lookup("AAPL")

        assert record.symbol == "AAPL"
        assert provider.calls == ["AAPL", "AAPL"]

    @pytest.mark.asyncio
    async def test_concurrent_callers_all_see_the_failure(self, service, provider):
        provider.error = InvalidSymbolError("Symbol not found: ZZZZ")
        provider.gate = asyncio.Event()

        tasks = [asyncio.create_task(service.lookup("zzzz")) for _ in range(4)]
        await settle()
        provider.gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert provider.calls == ["ZZZZ"]
        assert all(result.kind is ErrorKind.INVALID_SYMBOL for result in results)
        assert len(service.cache) == 0


class TestSearch:
    """Tests for symbol search"""

    @pytest.mark.asyncio
    async def test_blank_query_returns_empty_without_provider_call(self, service, provider):
        assert await service.search("   ") == []
        assert await service.search("") == []
        assert provider.search_calls == []

    @pytest.mark.asyncio
    async def test_query_is_trimmed_and_forwarded(self, service, provider):
        results = await service.search("  apple ")

        assert provider.search_calls == ["apple"]
        assert results[0].symbol == "AAPL"

    @pytest.mark.asyncio
    async def test_provider_failure_returns_empty_list(self, provider, cache):
        """Verify a throttled search degrades to no suggestions"""
        searcher = FailingSearchProvider(RateLimitedError("Yahoo Finance rate limit exceeded. Please try again later."))
        svc = QuoteService(provider, cache=cache, search_provider=searcher)

        assert await svc.search("apple") == []
        assert searcher.search_calls == ["apple"]

    @pytest.mark.asyncio
    async def test_separate_search_provider_is_used(self, provider, cache):
        searcher = FakeProvider()
        svc = QuoteService(provider, cache=cache, search_provider=searcher)

        await svc.search("apple")

        assert searcher.search_calls == ["apple"]
        assert provider.search_calls == []


class TestCacheAdministration:
    """Tests for warming, invalidation and info"""

    @pytest.mark.asyncio
    async def test_warm_cache_skips_cached_and_invalid_symbols(self, service, provider):
        service.cache.set("AAPL", make_record("AAPL"))

        cached = await service.warm_cache(["aapl", "msft", " ", "MSFT", "googl"])

        assert sorted(provider.calls) == ["GOOGL", "MSFT"]
        assert cached == 3

    @pytest.mark.asyncio
    async def test_warm_cache_counts_only_successes(self, service, provider):
        provider.error = RateLimitedError("slow down")

        cached = await service.warm_cache(["AAPL", "MSFT"])

        assert cached == 0
        assert len(service.cache) == 0

    @pytest.mark.asyncio
    async def test_invalidate_normalizes_symbol(self, service):
        await service.lookup("AAPL")

        assert service.invalidate(" aapl ") is True
        assert service.invalidate("AAPL") is False

    @pytest.mark.asyncio
    async def test_info_reports_cache_and_flight_state(self, service):
        await service.lookup("AAPL")

        info = service.info()

        assert info["cached_symbols"] == ["AAPL"]
        assert info["stats"]["entries"] == 1
        assert info["config"]["ttl"] == 60
        assert info["in_flight"]["in_flight"] == 0


class TestCleanupLoop:
    """Tests for the background expiry sweep"""

    @pytest.mark.asyncio
    async def test_loop_purges_expired_entries(self, provider, cache, clock):
        svc = QuoteService(provider, cache=cache, cleanup_interval=0.01)
        cache.set("AAPL", make_record("AAPL"))
        clock.advance(120)

        await svc.start()
        assert svc.is_running is True
        await asyncio.sleep(0.05)
        await svc.stop()

        assert len(cache) == 0
        assert svc.is_running is False

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, service):
        await service.start()
        await service.start()
        await service.stop()
        await service.stop()

        assert service.is_running is False
