"""
Shared test doubles for the unit tests.

FakeProvider stands in for an upstream provider: it records every call, can be
told to fail, and can be held at a gate so tests control exactly when an
in-flight fetch resolves.
"""

import asyncio
from typing import List, Optional

import pytest

from core.provider_interface import QuoteProvider
from core.schemas import QuoteDataPoint, QuoteRecord, StockSuggestion


def make_record(symbol: str = "AAPL", closes=(185.64, 184.25)) -> QuoteRecord:
    """Build a small QuoteRecord with one bar per close, newest first."""
    points = [
        QuoteDataPoint(
            date=f"2024-01-{10 - i:02d}",
            open=close,
            high=close,
            low=close,
            close=close,
            adj_close=close,
            volume=1000,
            unadjusted_volume=1000,
            vwap=close,
            label=f"January {10 - i}, 24",
        )
        for i, close in enumerate(closes)
    ]
    return QuoteRecord(symbol=symbol, historical=points, data_points=len(points))


async def settle(rounds: int = 5) -> None:
    """Let every runnable task advance to its next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeProvider(QuoteProvider):
    name = "fake"

    capabilities = {
        "quotes": True,
        "search": True,
    }

    def __init__(self, error: Optional[Exception] = None):
        self.calls: List[str] = []
        self.search_calls: List[str] = []
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.healthy = True

    async def fetch_quote(self, symbol: str) -> QuoteRecord:
        self.calls.append(symbol)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return make_record(symbol)

    async def search(self, query: str) -> List[StockSuggestion]:
        self.search_calls.append(query)
        return [StockSuggestion(symbol="AAPL", name="Apple Inc.", exchange="NMS", reason="NMS • EQUITY")]

    async def health_check(self) -> bool:
        return self.healthy


class FailingSearchProvider(FakeProvider):
    """Provider whose search always raises ``search_error``."""

    def __init__(self, search_error: Exception):
        super().__init__()
        self.search_error = search_error

    async def search(self, query: str) -> List[StockSuggestion]:
        self.search_calls.append(query)
        raise self.search_error


class FakeClock:
    """Manually advanced clock for freshness tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def clock():
    return FakeClock()
