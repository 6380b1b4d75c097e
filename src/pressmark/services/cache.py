"""In-memory TTL cache shared by the media lookup and derivative services."""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any


@dataclass
class CacheEntry:
    """A single cache entry with expiration time."""

    value: Any
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass
class Cache:
    """In-memory cache with TTL support and batch lookups."""

    ttl_seconds: int = 300
    _store: dict[str, CacheEntry] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def _expiry(self, ttl_seconds: int | None) -> datetime:
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds
        return datetime.now() + timedelta(seconds=ttl)

    async def get(self, key: str) -> Any | None:
        """Get a value from the cache if it exists and hasn't expired."""
        hits = await self.get_many([key])
        return hits.get(key)

    async def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        """Return the unexpired entries among ``keys``; misses are left out."""
        now = datetime.now()
        hits: dict[str, Any] = {}
        async with self._lock:
            for key in keys:
                entry = self._store.get(key)
                if entry is None:
                    continue
                if entry.is_expired(now):
                    del self._store[key]
                    continue
                hits[key] = entry.value
        return hits

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Set a value in the cache with optional custom TTL."""
        await self.set_many({key: value}, ttl_seconds=ttl_seconds)

    async def set_many(self, items: dict[str, Any], ttl_seconds: int | None = None) -> None:
        """Store several values sharing one expiry time."""
        expires_at = self._expiry(ttl_seconds)
        async with self._lock:
            for key, value in items.items():
                self._store[key] = CacheEntry(value=value, expires_at=expires_at)

    async def clear(self) -> int:
        """Clear all entries from the cache. Returns number of entries cleared."""
        async with self._lock:
            count = len(self._store)
            self._store.clear()
            return count

    @property
    def size(self) -> int:
        """Return the current number of entries in the cache."""
        return len(self._store)


# Global cache instance
_cache: Cache | None = None


def get_cache() -> Cache:
    """Get the global cache instance."""
    global _cache
    if _cache is None:
        from pressmark.config import get_settings

        settings = get_settings()
        ttl = 0 if settings.debug else settings.cache_ttl_seconds
        _cache = Cache(ttl_seconds=ttl)
    return _cache


def reset_cache() -> None:
    """Reset the global cache instance. Useful for testing."""
    global _cache
    _cache = None
