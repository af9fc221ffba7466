"""
Storage Package

Handles caching of quote data.

Current implementation:
- In-memory, TTL-bounded cache of the latest QuoteRecord per symbol

The cache is volatile: it lives for the process lifetime and is never persisted.
"""

from storage.quote_cache import QuoteCache, CacheEntry

__all__ = ["QuoteCache", "CacheEntry"]
