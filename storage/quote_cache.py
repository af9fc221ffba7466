"""
In-Memory Quote Cache

Holds the most recent successfully fetched QuoteRecord per symbol together with
the moment it was fetched. An entry is served only while

    now - fetched_at <= ttl

Once that no longer holds the entry is treated exactly like a symbol that was
never fetched. Expired entries are purged lazily on read and in bulk by
``cleanup()``.

The store is bounded by ``max_size`` (0 = unbounded). Inserting a new symbol
into a full store evicts the entry with the oldest ``fetched_at``.

The clock is injectable so tests can move time forward without sleeping:

    >>> now = [0.0]
    >>> cache = QuoteCache(ttl_seconds=60, clock=lambda: now[0])
    >>> cache.set("AAPL", record)
    >>> now[0] = 61
    >>> cache.get("AAPL") is None
    True
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, List, Optional

from core.logging import get_logger, log_cache_event
from core.schemas import CacheConfig, CacheStats, QuoteRecord


@dataclass
class CacheEntry:
    symbol: str
    record: QuoteRecord
    fetched_at: float


class QuoteCache:
    """
    Symbol-keyed cache with a freshness horizon.

    Args:
        ttl_seconds: Freshness horizon in seconds
        max_size: Maximum number of entries, 0 disables the bound
        cleanup_interval: Seconds between background sweeps (informational;
            the sweep loop lives in QuoteService)
        clock: Monotonic time source in seconds
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_size: int = 1000,
        cleanup_interval: float = 600,
        clock: Callable[[], float] = time.monotonic
    ):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        if max_size < 0:
            raise ValueError(f"max_size cannot be negative, got {max_size}")

        self.ttl = ttl_seconds
        self.max_size = max_size
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        # Insertion order == fetch order, since set() moves the key to the end
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._logger = get_logger(__name__)

    @staticmethod
    def _key(symbol: str) -> str:
        return symbol.strip().upper()

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.fetched_at <= self.ttl

    # ============================================
    # Read / Write
    # ============================================

    def get(self, symbol: str) -> Optional[QuoteRecord]:
        """Return the cached record if present and fresh, else None."""
        key = self._key(symbol)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                log_cache_event("miss", key)
                return None

            if not self._is_fresh(entry, self._clock()):
                del self._entries[key]
                self._misses += 1
                log_cache_event("expired", key)
                return None

            self._hits += 1
            log_cache_event("hit", key)
            return entry.record

    def set(self, symbol: str, record: QuoteRecord) -> None:
        """Store ``record`` under ``symbol``, replacing any existing entry."""
        key = self._key(symbol)
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif self.max_size and len(self._entries) >= self.max_size:
                oldest, _ = self._entries.popitem(last=False)
                log_cache_event("evict", oldest, "capacity reached")

            self._entries[key] = CacheEntry(symbol=key, record=record, fetched_at=self._clock())
            log_cache_event("set", key, f"{record.data_points} data points")

    def has(self, symbol: str) -> bool:
        """True if a fresh entry exists. Does not touch hit/miss counters."""
        key = self._key(symbol)
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._is_fresh(entry, self._clock())

    # ============================================
    # Maintenance
    # ============================================

    def delete(self, symbol: str) -> bool:
        """Remove one symbol. Returns True if an entry was removed."""
        key = self._key(symbol)
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            log_cache_event("delete", key)
        return removed

    def clear(self) -> None:
        """Drop every entry and reset the counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        log_cache_event("clear")

    def cleanup(self) -> int:
        """Purge expired entries. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if not self._is_fresh(entry, now)]
            for key in expired:
                del self._entries[key]

        if expired:
            log_cache_event("cleanup", details=f"removed {len(expired)} expired entries")
        return len(expired)

    # ============================================
    # Monitoring
    # ============================================

    def cached_symbols(self) -> List[str]:
        """Sorted symbols currently stored (fresh or awaiting purge)."""
        with self._lock:
            return sorted(self._entries.keys())

    def stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            # Rough estimate: 2 bytes per serialized character
            memory = sum(len(entry.record.model_dump_json()) * 2 for entry in self._entries.values())
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                total_requests=total,
                hit_rate=(self._hits / total) * 100 if total else 0.0,
                entries=len(self._entries),
                memory_usage=memory,
            )

    @property
    def config(self) -> CacheConfig:
        return CacheConfig(ttl=self.ttl, max_size=self.max_size, cleanup_interval=self.cleanup_interval)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"<QuoteCache entries={len(self._entries)} ttl={self.ttl}s max_size={self.max_size}>"
