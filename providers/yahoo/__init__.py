"""
Yahoo Finance Provider

Implements QuoteProvider on top of the public Yahoo Finance query API.
No API key is required.

Capabilities:
    - quotes: Daily history (last N years, configurable via HISTORY_YEARS)
    - search: Free-text symbol search

Structure:
    providers/yahoo/
    ├── __init__.py          # This file (YahooProvider class)
    └── api_client.py        # REST client with httpx
"""

from typing import List, Optional

from core.provider_interface import QuoteProvider
from core.schemas import QuoteRecord, StockSuggestion
from core.logging import logger
from .api_client import YahooAPIClient


class YahooProvider(QuoteProvider):
    """
    Yahoo Finance quote provider.

    Example:
        >>> provider = YahooProvider()
        >>> await provider.initialize()
        >>> record = await provider.fetch_quote("AAPL")
        >>> await provider.shutdown()
    """

    name = "yahoo"

    capabilities = {
        "quotes": True,
        "search": True,
    }

    def __init__(self, client: Optional[YahooAPIClient] = None):
        """
        Args:
            client: Pre-built API client (tests inject one with a mock transport)
        """
        from core.config import settings

        self.search_limit = settings.search_limit
        self.client = client or YahooAPIClient()
        self._ready = False

    async def initialize(self) -> None:
        if self._ready:
            return
        logger.info("Initializing Yahoo Finance provider...")
        await self.client.__aenter__()
        self._ready = True

    async def shutdown(self) -> None:
        if not self._ready:
            return
        await self.client.__aexit__(None, None, None)
        self._ready = False
        logger.info("Yahoo Finance provider shut down")

    async def fetch_quote(self, symbol: str) -> QuoteRecord:
        await self.initialize()
        return await self.client.get_quote(symbol)

    async def search(self, query: str) -> List[StockSuggestion]:
        await self.initialize()
        return await self.client.search(query, limit=self.search_limit)

    async def health_check(self) -> bool:
        await self.initialize()
        return await self.client.ping()
