"""
TTL Cache - In-process key/value store with lazy expiry.

Three named instances partition the keyspace:
- token_info: token metadata (24h)
- prices: historical (30d) and current (5min) prices
- failed_tokens: negative cache for price lookups known to fail (1h)

Caches are injected into chain clients instead of living as module
globals, so tests and separate deployments get isolated state.
Values are treated as immutable once written; concurrent writers are
last-write-wins.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class CacheTTL:
    """Default TTLs in seconds."""
    TOKEN_INFO = 24 * 60 * 60
    PRICE_MONTHLY = 30 * 24 * 60 * 60
    PRICE_CURRENT = 5 * 60
    FAILED_TOKEN = 60 * 60


@dataclass
class CacheEntry:
    """Cached value with absolute expiry."""
    value: Any
    created_at: float
    expires_at: float
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def age_seconds(self, now: float) -> float:
        return now - self.created_at


class TTLCache:
    """
    Unbounded TTL cache.

    Expired entries are removed lazily on read and by `cleanup()`.
    """

    def __init__(
        self,
        name: str,
        default_ttl: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._misses += 1
            return None

        entry.hits += 1
        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(
            value=value,
            created_at=now,
            expires_at=now + (self.default_ttl if ttl is None else ttl),
        )

    def has(self, key: str) -> bool:
        """Check presence without touching hit/miss counters."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return False
        return True

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        logger.debug(f"[{self.name}] Cache cleared")

    def cleanup(self) -> int:
        """Sweep expired entries. Returns the number removed."""
        now = self._clock()
        expired_keys = [
            key for key, entry in self._entries.items()
            if entry.is_expired(now)
        ]
        for key in expired_keys:
            del self._entries[key]

        if expired_keys:
            logger.debug(f"[{self.name}] Cleaned {len(expired_keys)} expired cache entries")
        return len(expired_keys)

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if entry.is_expired(now))
        total_requests = self._hits + self._misses
        hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "name": self.name,
            "total": len(self._entries),
            "valid": len(self._entries) - expired,
            "expired": expired,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate_percent": round(hit_rate, 2),
        }


@dataclass
class CacheRegistry:
    """The three named caches used by chain clients."""
    token_info: TTLCache = field(
        default_factory=lambda: TTLCache("token_info", CacheTTL.TOKEN_INFO)
    )
    prices: TTLCache = field(
        default_factory=lambda: TTLCache("prices", CacheTTL.PRICE_MONTHLY)
    )
    failed_tokens: TTLCache = field(
        default_factory=lambda: TTLCache("failed_tokens", CacheTTL.FAILED_TOKEN)
    )

    @classmethod
    def with_clock(cls, clock: Callable[[], float]) -> "CacheRegistry":
        """Registry whose caches share a custom clock (tests)."""
        return cls(
            token_info=TTLCache("token_info", CacheTTL.TOKEN_INFO, clock),
            prices=TTLCache("prices", CacheTTL.PRICE_MONTHLY, clock),
            failed_tokens=TTLCache("failed_tokens", CacheTTL.FAILED_TOKEN, clock),
        )

    def all(self) -> list[TTLCache]:
        return [self.token_info, self.prices, self.failed_tokens]

    def cleanup_all(self) -> int:
        return sum(cache.cleanup() for cache in self.all())

    def clear_all(self) -> None:
        for cache in self.all():
            cache.clear()

    def counters(self) -> tuple[int, int]:
        """Combined (hits, misses) across all caches."""
        return (
            sum(cache.hits for cache in self.all()),
            sum(cache.misses for cache in self.all()),
        )

    def hit_rate_percent(self, since: tuple[int, int] = (0, 0)) -> float:
        """Combined hit rate, counting only lookups after a `counters()` snapshot."""
        hits, misses = self.counters()
        hits -= since[0]
        total = hits + misses - since[1]
        return round(hits / total * 100, 2) if total > 0 else 0.0

    def stats(self) -> dict[str, Any]:
        return {cache.name: cache.get_stats() for cache in self.all()}


_default_caches: Optional[CacheRegistry] = None


def get_default_caches() -> CacheRegistry:
    """Process-wide registry used when a client is built without one."""
    global _default_caches
    if _default_caches is None:
        _default_caches = CacheRegistry()
    return _default_caches
