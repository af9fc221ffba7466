"""
Provider Manager — Central Registry for Quote Providers

Maintains one instance of every available QuoteProvider and manages their
lifecycle (initialize / shutdown / health checks).

Example Usage:
    manager = ProviderManager()
    await manager.initialize_all()

    provider = manager.get_provider(settings.quote_provider)
    record = await provider.fetch_quote("AAPL")

    await manager.shutdown_all()
"""

from typing import Dict, List, Optional

from core.provider_interface import QuoteProvider
from core.logging import logger


class ProviderManager:
    """
    Registry of quote providers.

    Attributes:
        providers: Mapping of provider name to provider instance
    """

    def __init__(self, providers: Optional[Dict[str, QuoteProvider]] = None):
        """
        Create the registry.

        Args:
            providers: Explicit registry (mainly for tests). When omitted, all
                built-in providers are registered.
        """
        if providers is None:
            # Provider modules import from core, so import lazily
            from providers.yahoo import YahooProvider
            from providers.fmp import FMPProvider

            providers = {
                "yahoo": YahooProvider(),
                "fmp": FMPProvider(),
            }

        self.providers: Dict[str, QuoteProvider] = providers

        logger.info(f"ProviderManager initialized with {len(self.providers)} provider(s): {', '.join(self.providers.keys())}")

    # ============================================
    # Retrieval
    # ============================================

    def get_provider(self, name: str) -> QuoteProvider:
        """
        Get a provider by name (case-insensitive).

        Raises:
            ValueError: If the provider is not registered
        """
        name = name.lower()

        if name not in self.providers:
            available = ", ".join(self.providers.keys())
            logger.error(f"Provider '{name}' not found. Available: {available}")
            raise ValueError(
                f"Provider '{name}' is not supported. "
                f"Available providers: {available}"
            )

        return self.providers[name]

    def has_provider(self, name: str) -> bool:
        return name.lower() in self.providers

    def list_providers(self) -> List[str]:
        return list(self.providers.keys())

    def get_providers_with_feature(self, feature: str) -> List[str]:
        """Names of providers supporting ``feature`` (e.g., "search")."""
        return [name for name, provider in self.providers.items() if provider.supports(feature)]

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize_all(self) -> None:
        """Initialize all providers; one failure does not stop the others."""
        logger.info("Initializing all providers...")

        for name, provider in self.providers.items():
            try:
                await provider.initialize()
                logger.info(f"✓ {name} initialized")
            except Exception as e:
                logger.error(f"✗ Failed to initialize {name}: {e}")

        logger.info("Provider initialization complete")

    async def shutdown_all(self) -> None:
        logger.info("Shutting down all providers...")

        for name, provider in self.providers.items():
            try:
                await provider.shutdown()
                logger.info(f"✓ {name} shutdown complete")
            except Exception as e:
                logger.error(f"✗ Error shutting down {name}: {e}")

    async def health_check_all(self) -> Dict[str, bool]:
        """
        Run health checks on all providers.

        Returns:
            Dict mapping provider names to health status
        """
        results = {}
        for name, provider in self.providers.items():
            try:
                results[name] = await provider.health_check()
            except Exception as e:
                logger.error(f"Health check failed for {name}: {e}")
                results[name] = False
        return results

    def __repr__(self) -> str:
        return f"<ProviderManager(providers={self.list_providers()})>"

    def __len__(self) -> int:
        return len(self.providers)
