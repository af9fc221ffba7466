"""
Single-Flight Fetch Coordinator

Collapses concurrent fetches for the same symbol into one upstream call.

The first caller for a symbol becomes the *leader*: it registers a ticket (an
asyncio.Future) in the in-flight table and runs the fetch. Every caller that
arrives while the ticket exists becomes a *follower* and awaits the same
future, receiving the identical record or the identical exception.

Rules:
    - At most one ticket per symbol. The lookup and the insert happen with no
      await in between, so on a single event loop they cannot interleave.
    - The ticket is removed as soon as the fetch resolves (success, failure,
      timeout or cancellation), before the leader returns. A caller arriving
      after that starts a new, independent fetch.
    - The fetch runs under a wall-clock timeout. A timed-out leader fails its
      followers with UpstreamGenericError instead of leaving them hanging.
    - Followers await through asyncio.shield(), so a follower that gets
      cancelled never cancels the shared outcome.
    - No retries happen here. Retry policy belongs to the provider client.

Usage:
    flight = SingleFlight(fetch_timeout=30)
    record = await flight.acquire_or_join("AAPL", provider.fetch_quote)
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from core.errors import QuoteLookupError, UpstreamGenericError
from core.logging import get_logger, log_cache_event
from core.schemas import QuoteRecord


FetchFn = Callable[[str], Awaitable[QuoteRecord]]


class SingleFlight:
    """
    In-flight ticket table keyed by symbol.

    Each instance owns its own table, so independent services (and tests)
    never share tickets.

    Args:
        fetch_timeout: Seconds before a leader's fetch is abandoned
            (None disables the bound)
    """

    def __init__(self, fetch_timeout: Optional[float] = 30.0) -> None:
        self._tickets: Dict[str, asyncio.Future] = {}
        self._fetch_timeout = fetch_timeout
        self._leaders = 0
        self._followers = 0
        self._logger = get_logger(__name__)

    async def acquire_or_join(self, symbol: str, fetch_fn: FetchFn) -> QuoteRecord:
        """
        Fetch ``symbol`` through ``fetch_fn`` unless a fetch is already running.

        Args:
            symbol: Normalized symbol (the ticket key)
            fetch_fn: Coroutine function called with ``symbol`` by the leader only

        Returns:
            QuoteRecord: The leader's result

        Raises:
            QuoteLookupError: The leader's failure, shared with all followers
        """
        ticket = self._tickets.get(symbol)
        if ticket is not None:
            self._followers += 1
            log_cache_event("join", symbol, "awaiting in-flight fetch")
            return await asyncio.shield(ticket)

        ticket = asyncio.get_running_loop().create_future()
        self._tickets[symbol] = ticket
        self._leaders += 1
        log_cache_event("lead", symbol, "starting upstream fetch")

        try:
            result = await self._run(symbol, fetch_fn)
        except asyncio.CancelledError:
            self._fail(ticket, UpstreamGenericError("Upstream fetch was cancelled", can_retry=True))
            raise
        except QuoteLookupError as exc:
            self._fail(ticket, exc)
            raise
        else:
            ticket.set_result(result)
            return result
        finally:
            if self._tickets.get(symbol) is ticket:
                del self._tickets[symbol]

    async def _run(self, symbol: str, fetch_fn: FetchFn) -> QuoteRecord:
        try:
            if self._fetch_timeout:
                return await asyncio.wait_for(fetch_fn(symbol), timeout=self._fetch_timeout)
            return await fetch_fn(symbol)
        except asyncio.TimeoutError:
            self._logger.warning(f"Upstream fetch for {symbol} timed out after {self._fetch_timeout}s")
            raise UpstreamGenericError(
                "Request timeout. Please check your connection.", can_retry=True
            )
        except QuoteLookupError:
            raise
        except Exception as e:
            self._logger.error(f"Unexpected error fetching {symbol}: {e!r}")
            raise UpstreamGenericError(
                f"Failed to fetch stock data for {symbol}", can_retry=True
            ) from e

    @staticmethod
    def _fail(ticket: asyncio.Future, exc: BaseException) -> None:
        if ticket.done():
            return
        ticket.set_exception(exc)
        # Mark retrieved so a ticket with no followers is not reported as an unhandled error
        ticket.exception()

    # ============================================
    # Introspection
    # ============================================

    @property
    def in_flight_count(self) -> int:
        return len(self._tickets)

    def in_flight_symbols(self) -> List[str]:
        return sorted(self._tickets.keys())

    def stats(self) -> Dict[str, int]:
        return {
            "leaders": self._leaders,
            "followers": self._followers,
            "in_flight": len(self._tickets),
        }

    def __repr__(self) -> str:
        return f"<SingleFlight in_flight={len(self._tickets)} timeout={self._fetch_timeout}>"
