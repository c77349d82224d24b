# server/core/cache.py
"""
Caching utilities

In-memory, best-effort response cache with a TTL per entry. Entries past
their expiry are treated as absent on read and removed by ``sweep()``, which
``start_sweeper()`` runs on a fixed interval independent of request traffic.
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from cachetools import TLRUCache

logger = logging.getLogger(__name__)

@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float

def _entry_expiry(key: str, entry: CacheEntry, now: float) -> float:
    return entry.expires_at

def make_cache_key(endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Deterministic key from endpoint name and sorted query parameters"""
    normalized = {k: params[k] for k in sorted(params or {})}
    return f"{endpoint}:{json.dumps(normalized, sort_keys=True, default=str)}"

class CacheManager:
    """In-memory cache manager with per-entry TTL"""

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: int = 900,
        timer: Callable[[], float] = time.monotonic,
        enabled: bool = True
    ):
        self.enabled = enabled
        self.default_ttl = default_ttl
        self._timer = timer
        self._cache: TLRUCache = TLRUCache(maxsize=max_size, ttu=_entry_expiry, timer=timer)
        self._lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache, None when absent or expired"""
        if not self.enabled:
            return None
        async with self._lock:
            entry = self._cache.get(key)
        if entry is None:
            return None
        logger.debug(f"Cache hit for key: {key}")
        return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Set value in cache with TTL in seconds"""
        if not self.enabled:
            return
        ttl = self.default_ttl if ttl is None else ttl
        async with self._lock:
            self._cache[key] = CacheEntry(key=key, value=value, expires_at=self._timer() + ttl)
        logger.debug(f"Cached key: {key} (ttl={ttl}s)")

    async def delete(self, key: str) -> None:
        """Delete value from cache"""
        async with self._lock:
            self._cache.pop(key, None)

    async def clear(self) -> None:
        """Clear all cache"""
        async with self._lock:
            self._cache.clear()
        logger.info("Response cache cleared")

    async def sweep(self) -> int:
        """Evict expired entries, returns how many were removed"""
        async with self._lock:
            expired = self._cache.expire()
        if expired:
            logger.info(f"Cache cleanup completed: removed {len(expired)}, remaining {len(self._cache)}")
        return len(expired)

    def start_sweeper(self, interval: float = 300) -> None:
        """Run ``sweep()`` every ``interval`` seconds on the running loop"""
        if self._sweeper and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_forever(interval))

    async def stop_sweeper(self) -> None:
        if not self._sweeper:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.warning(f"Cache sweep error: {e}")

    def __len__(self) -> int:
        return len(self._cache)
