"""
In-memory TTL cache manager.

Owned by the process-lifetime runtime registry and passed to the services
that need it. There is no global instance.
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from loguru import logger


@dataclass
class _CacheEntry:
    value: Any
    expires_at: Optional[float]


class CacheManager:
    """
    Manages in-memory caching with per-entry expiry.

    Used to memoize parsed app documents keyed by a hash of their text.
    Expired entries are purged on every write, and when max_entries is set
    the least recently used entry is evicted to make room.
    """

    def __init__(
        self,
        default_ttl: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}

    def _is_expired(self, entry: _CacheEntry) -> bool:
        return entry.expires_at is not None and self._clock() >= entry.expires_at

    def get(self, key: str) -> Optional[Any]:
        """
        Get cached value by key.

        Returns:
            Cached value, or None if missing or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Cache MISS: {key}")
            return None

        if self._is_expired(entry):
            del self._entries[key]
            logger.debug(f"Cache EXPIRED: {key}")
            return None

        self._entries[key] = self._entries.pop(key)
        logger.debug(f"Cache HIT: {key}")
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Set cache value with optional TTL.

        Args:
            key: Cache key
            value: Value to cache (stored by reference)
            ttl: Time to live in seconds (default: the manager's default_ttl,
                 None means no expiry)
        """
        ttl = ttl if ttl is not None else self.default_ttl
        expires_at = self._clock() + ttl if ttl else None
        self._entries.pop(key, None)
        self.purge_expired()
        if self.max_entries is not None:
            while self._entries and len(self._entries) >= self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.debug(f"Cache EVICTED: {oldest}")
        self._entries[key] = _CacheEntry(value=value, expires_at=expires_at)
        logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def delete(self, key: str) -> bool:
        """Delete cached value. Returns True if a key was removed."""
        return self._entries.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def invalidate(self, prefix: str) -> int:
        """
        Delete all keys starting with prefix.

        Returns:
            Number of keys deleted
        """
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.info(f"Cache invalidated {len(keys)} keys matching '{prefix}*'")
        return len(keys)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        logger.debug("Cache cleared")

    def __len__(self) -> int:
        return len(self._entries)
