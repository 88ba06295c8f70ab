"""
In-memory TTL cache for expensive lookups (source metadata, counts).

An entry is visible iff now - stored_at <= ttl. Expired entries are dropped
when touched and by a periodic background sweep. At capacity, inserting a
new key evicts the oldest 10% by stored_at first. Eviction order is by
insertion time, not access time, so this is not a true LRU.
"""

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any

from regqual.config.settings import settings
from regqual.logger import get_logger

logger = get_logger(__name__)

EVICTION_FRACTION = 0.1


@dataclass
class CacheEntry:
    key: Hashable
    value: Any
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class TTLCache:
    def __init__(
        self,
        max_size: int | None = None,
        default_ttl: float | None = None,
        sweep_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size or settings.cache_max_size
        self.default_ttl = settings.cache_default_ttl if default_ttl is None else default_ttl
        self.sweep_interval = sweep_interval or settings.cache_sweep_interval
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()
        self._sweeper: asyncio.Task | None = None
        self.hits = 0
        self.misses = 0

        logger.info("cache_initialized", max_size=self.max_size, default_ttl=self.default_ttl)

    def __len__(self) -> int:
        return len(self._entries)

    def _lookup(self, key: Hashable) -> tuple[bool, Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return False, None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self.misses += 1
                logger.debug("cache_entry_expired", key=key)
                return False, None
            self.hits += 1
            return True, entry.value

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Cached value, or `default` on a miss."""
        found, value = self._lookup(key)
        return value if found else default

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_oldest(max(1, int(self.max_size * EVICTION_FRACTION)))
            self._entries[key] = CacheEntry(
                key=key, value=value, stored_at=self._clock(), ttl=ttl
            )
        logger.debug("cache_entry_set", key=key, ttl=ttl, size=len(self._entries))

    async def cached(
        self,
        key: Hashable,
        compute: Callable[[], Awaitable[Any]],
        ttl: float | None = None,
    ) -> Any:
        """Return the cached value or await `compute`, store and return its result."""
        found, value = self._lookup(key)
        if found:
            return value

        try:
            value = await compute()
        except Exception as e:
            logger.error("cached_compute_failed", key=key, error=str(e))
            raise

        self.set(key, value, ttl)
        return value

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            deleted = self._entries.pop(key, None) is not None
        if deleted:
            logger.debug("cache_entry_deleted", key=key)
        return deleted

    def clear(self) -> None:
        with self._lock:
            previous = len(self._entries)
            self._entries.clear()
        logger.info("cache_cleared", previous_size=previous)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("cache_expired_purged", removed=len(expired), size=len(self._entries))
        return len(expired)

    def _evict_oldest(self, count: int) -> None:
        # Caller holds the lock.
        oldest = sorted(self._entries.values(), key=lambda e: e.stored_at)[:count]
        for entry in oldest:
            del self._entries[entry.key]
        logger.debug("cache_evicted_oldest", evicted=len(oldest), size=len(self._entries))

    def stats(self) -> dict:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self.hits,
                "misses": self.misses,
                "keys": list(self._entries),
            }

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self) -> asyncio.Task:
        """Start the periodic expiry sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())
        return self._sweeper

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.purge_expired()

    async def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        self.clear()
        logger.info("cache_closed")
