"""
Unit Tests for the Single-Flight Coordinator

These tests verify that SingleFlight:
- Runs exactly one fetch per symbol while a fetch is in flight
- Delivers the leader's result or exception to every follower
- Removes the ticket before the leader returns
- Fails followers on leader timeout or cancellation
- Keeps the shared outcome alive when a follower is cancelled

Run with:
    pytest tests/unit/test_single_flight.py -v
"""

import asyncio

import pytest

from core.errors import RateLimitedError, UpstreamGenericError
from services.single_flight import SingleFlight
from tests.unit.conftest import make_record, settle


class GatedFetch:
    """Fetch function that blocks until released and counts its calls."""

    def __init__(self, error=None):
        self.calls = []
        self.gate = asyncio.Event()
        self.error = error

    async def __call__(self, symbol):
        self.calls.append(symbol)
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return make_record(symbol)


class TestDeduplication:
    """Tests for collapsing concurrent fetches"""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self):
        """Verify N concurrent callers trigger one fetch and get the same record"""
        flight = SingleFlight(fetch_timeout=5)
        fetch = GatedFetch()

        tasks = [asyncio.create_task(flight.acquire_or_join("AAPL", fetch)) for _ in range(10)]
        await settle()

        assert fetch.calls == ["AAPL"]
        assert flight.in_flight_symbols() == ["AAPL"]

        fetch.gate.set()
        results = await asyncio.gather(*tasks)

        assert all(result is results[0] for result in results)
        assert flight.stats() == {"leaders": 1, "followers": 9, "in_flight": 0}

    @pytest.mark.asyncio
    async def test_different_symbols_fetch_independently(self):
        flight = SingleFlight(fetch_timeout=5)
        fetch = GatedFetch()

        tasks = [
            asyncio.create_task(flight.acquire_or_join(symbol, fetch))
            for symbol in ("AAPL", "MSFT", "AAPL")
        ]
        await settle()
        fetch.gate.set()
        results = await asyncio.gather(*tasks)

        assert sorted(fetch.calls) == ["AAPL", "MSFT"]
        assert results[0] is results[2]
        assert results[1].symbol == "MSFT"

    @pytest.mark.asyncio
    async def test_ticket_removed_before_leader_returns(self):
        """Verify a caller after completion starts a new fetch"""
        flight = SingleFlight(fetch_timeout=5)
        fetch = GatedFetch()
        fetch.gate.set()

        first = await flight.acquire_or_join("AAPL", fetch)
        assert flight.in_flight_count == 0

        second = await flight.acquire_or_join("AAPL", fetch)

        assert fetch.calls == ["AAPL", "AAPL"]
        assert first is not second


class TestFailures:
    """Tests for failure propagation"""

    @pytest.mark.asyncio
    async def test_leader_failure_reaches_every_follower(self):
        """Verify all callers receive the same typed error"""
        error = RateLimitedError("Yahoo Finance rate limit exceeded. Please try again later.")
        flight = SingleFlight(fetch_timeout=5)
        fetch = GatedFetch(error=error)

        tasks = [asyncio.create_task(flight.acquire_or_join("AAPL", fetch)) for _ in range(5)]
        await settle()
        fetch.gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert fetch.calls == ["AAPL"]
        assert all(result is error for result in results)
        assert flight.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_failure_is_not_remembered(self):
        """Verify the next caller after a failure fetches again"""
        flight = SingleFlight(fetch_timeout=5)
        fetch = GatedFetch(error=RateLimitedError("slow down"))
        fetch.gate.set()

        with pytest.raises(RateLimitedError):
            await flight.acquire_or_join("AAPL", fetch)

        fetch.error = None
        record = await flight.acquire_or_join("AAPL", fetch)

        assert record.symbol == "AAPL"
        assert len(fetch.calls) == 2

    @pytest.mark.asyncio
    async def test_untyped_error_is_wrapped(self):
        """Verify unexpected exceptions surface as UpstreamGenericError"""
        flight = SingleFlight(fetch_timeout=5)

        async def broken(symbol):
            raise ValueError("bad payload")

        with pytest.raises(UpstreamGenericError) as exc_info:
            await flight.acquire_or_join("AAPL", broken)

        assert exc_info.value.can_retry is True
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert flight.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_timeout_fails_leader_and_followers(self):
        """Verify a hung fetch is abandoned and its ticket cleared"""
        flight = SingleFlight(fetch_timeout=0.05)
        fetch = GatedFetch()

        leader = asyncio.create_task(flight.acquire_or_join("AAPL", fetch))
        await settle()
        follower = asyncio.create_task(flight.acquire_or_join("AAPL", fetch))
        results = await asyncio.gather(leader, follower, return_exceptions=True)

        assert all(isinstance(result, UpstreamGenericError) for result in results)
        assert results[0] is results[1]
        assert results[0].can_retry is True
        assert flight.in_flight_count == 0


class TestCancellation:
    """Tests for cancellation of leaders and followers"""

    @pytest.mark.asyncio
    async def test_cancelled_leader_fails_followers(self):
        flight = SingleFlight(fetch_timeout=5)
        fetch = GatedFetch()

        leader = asyncio.create_task(flight.acquire_or_join("AAPL", fetch))
        await settle()
        follower = asyncio.create_task(flight.acquire_or_join("AAPL", fetch))
        await settle()

        leader.cancel()

        with pytest.raises(asyncio.CancelledError):
            await leader
        with pytest.raises(UpstreamGenericError):
            await follower
        assert flight.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_follower_does_not_cancel_fetch(self):
        """Verify the leader and other followers still get the record"""
        flight = SingleFlight(fetch_timeout=5)
        fetch = GatedFetch()

        leader = asyncio.create_task(flight.acquire_or_join("AAPL", fetch))
        await settle()
        quitter = asyncio.create_task(flight.acquire_or_join("AAPL", fetch))
        stayer = asyncio.create_task(flight.acquire_or_join("AAPL", fetch))
        await settle()

        quitter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await quitter

        fetch.gate.set()
        record = await leader

        assert await stayer is record
        assert fetch.calls == ["AAPL"]
