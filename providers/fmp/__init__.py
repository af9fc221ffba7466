"""
Financial Modeling Prep Provider

Implements QuoteProvider on top of the Financial Modeling Prep v3 API.
Requires FMP_API_KEY; without it every lookup fails with UpstreamAuthError.

Capabilities:
    - quotes: Full daily end-of-day history
    - search: not supported (search goes through Yahoo Finance)

Structure:
    providers/fmp/
    ├── __init__.py          # This file (FMPProvider class)
    └── api_client.py        # REST client with aiohttp
"""

from typing import Optional

from core.provider_interface import QuoteProvider
from core.schemas import QuoteRecord
from core.logging import logger
from .api_client import FMPAPIClient


class FMPProvider(QuoteProvider):
    """Financial Modeling Prep quote provider."""

    name = "fmp"

    capabilities = {
        "quotes": True,
        "search": False,
    }

    def __init__(self, client: Optional[FMPAPIClient] = None):
        self.client = client or FMPAPIClient()
        self._ready = False

    async def initialize(self) -> None:
        if self._ready:
            return
        logger.info("Initializing Financial Modeling Prep provider...")
        await self.client.__aenter__()
        self._ready = True

    async def shutdown(self) -> None:
        if not self._ready:
            return
        await self.client.__aexit__(None, None, None)
        self._ready = False
        logger.info("Financial Modeling Prep provider shut down")

    async def fetch_quote(self, symbol: str) -> QuoteRecord:
        await self.initialize()
        return await self.client.get_quote(symbol)

    async def health_check(self) -> bool:
        await self.initialize()
        return await self.client.ping()
