"""
Quote Provider Interface — Abstract Contract for Upstream Data Providers

Every upstream data source (Yahoo Finance, Financial Modeling Prep, ...) is
wrapped in a class implementing this interface. The quote service only ever
talks to QuoteProvider, so providers can be swapped through configuration.

Contract:
    fetch_quote(symbol) -> QuoteRecord
        ``symbol`` is already normalized (trimmed, uppercase). Failures are
        raised as core.errors.QuoteLookupError subclasses; any other exception
        is treated as a generic upstream failure by the caller.

    search(query) -> List[StockSuggestion]
        Optional; only providers with the "search" capability implement it.

Capabilities System:
    Each provider declares which features it supports via ``capabilities``:

        capabilities = {
            "quotes": True,
            "search": False,
        }
"""

from abc import ABC, abstractmethod
from typing import Dict, List

from core.schemas import QuoteRecord, StockSuggestion


class QuoteProvider(ABC):
    """
    Abstract Base Class for Quote Providers

    Class Attributes:
        name: Unique identifier for the provider (lowercase, e.g., "yahoo", "fmp")
        capabilities: Dictionary indicating which features this provider supports

    Abstract Methods:
        - fetch_quote: Fetch daily history for one symbol

    Optional Methods (can be overridden):
        - search: Free-text symbol search
        - initialize: Setup HTTP sessions
        - shutdown: Cleanup HTTP sessions
        - health_check: Verify the provider API is reachable
    """

    name: str

    capabilities: Dict[str, bool] = {
        "quotes": False,
        "search": False,
    }

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> QuoteRecord:
        """
        Fetch the quote record for one symbol.

        Args:
            symbol: Normalized ticker symbol (e.g., "AAPL")

        Returns:
            QuoteRecord: Daily bars, newest first

        Raises:
            InvalidSymbolError: Provider does not know the symbol
            RateLimitedError: Provider throttled the request
            UpstreamAuthError: Credentials missing or rejected
            UpstreamGenericError: Network, timeout or payload problems
        """
        ...

    async def search(self, query: str) -> List[StockSuggestion]:
        """
        Search for symbols matching a free-text query.

        Raises:
            NotImplementedError: If the provider has no search capability
        """
        raise NotImplementedError(f"{self.name} does not support search")

    async def initialize(self) -> None:
        """Setup connections. Default: nothing to do."""
        return None

    async def shutdown(self) -> None:
        """Release connections. Default: nothing to do."""
        return None

    async def health_check(self) -> bool:
        """
        Verify the provider is reachable.

        Notes:
            - Default implementation returns True
            - Overrides should make a lightweight API call, never fetch_quote(),
              which would bypass the cache and the single-flight table
            - Don't raise exceptions; return False on errors
        """
        return True

    def supports(self, feature: str) -> bool:
        """
        Check whether this provider supports a feature.

        Example:
            >>> if provider.supports("search"):
            ...     results = await provider.search("apple")
        """
        return self.capabilities.get(feature, False)

    def __repr__(self) -> str:
        supported = [k for k, v in self.capabilities.items() if v]
        return f"<{self.__class__.__name__}(name='{self.name}', capabilities={supported})>"
