"""Versioned in-memory caches shared by the reply pipeline.

One CacheService is built per process and injected into the knowledge
compiler, the prompt assembler and the market data tool. Keys for bot-scoped
caches start with ``(bot_id, version)`` so a settings change is a natural
miss; ``invalidate(bot_id)`` evicts ahead of expiry.

The service is meant for a single asyncio event loop. Nothing awaits between
a lookup and the write that follows it, so the maps need no lock there. Under
threads, wrap every cache in a mutex.
"""

import logging
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from chatcore.lib.config import CacheSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

KNOWLEDGE_CACHE = "knowledge"
PROMPT_CACHE = "prompt"
QUOTE_CACHE = "market_quote"

_MISSING = object()


@dataclass
class CacheEntry(Generic[T]):
    """Cached value with its creation time."""

    value: T
    created_at: float

    def is_valid(self, now: float, ttl_seconds: float) -> bool:
        return now - self.created_at < ttl_seconds


class VersionedCache:
    """Bounded TTL map that evicts the oldest-created entries first."""

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        capacity: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.capacity = capacity
        self._clock = clock
        # Insertion order doubles as creation order: set() re-inserts at the end
        self._entries: dict[Hashable, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, ttl_seconds: float | None = None, default: Any = None) -> Any:
        """Return a live cached value or ``default``; expired entries are dropped."""
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        entry = self._entries.get(key)

        if entry is None:
            self.misses += 1
            return default

        if not entry.is_valid(self._clock(), ttl):
            del self._entries[key]
            self.misses += 1
            logger.debug(f"[{self.name}] expired: {key}")
            return default

        self.hits += 1
        return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        """Store a value stamped with the current time, then evict down to capacity."""
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value=value, created_at=self._clock())
        self._evict()

    def _evict(self) -> None:
        overflow = len(self._entries) - self.capacity
        if overflow <= 0:
            return

        for key in list(self._entries)[:overflow]:
            del self._entries[key]
        logger.debug(f"[{self.name}] evicted {overflow} oldest entries")

    def invalidate(self, bot_id: str) -> int:
        """Drop every entry whose key belongs to ``bot_id``.

        Returns:
            Number of entries removed
        """
        doomed = [
            key for key in self._entries if isinstance(key, tuple) and key and key[0] == bot_id
        ]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
        }


class CacheService:
    """Owns the knowledge, prompt and market-quote caches."""

    def __init__(
        self,
        settings: CacheSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the caches.

        Args:
            settings: TTLs and capacities (defaults when omitted)
            clock: Time source in seconds, injectable for tests
        """
        settings = settings or CacheSettings()
        self.settings = settings
        self._caches = {
            KNOWLEDGE_CACHE: VersionedCache(
                KNOWLEDGE_CACHE, settings.knowledge_ttl_seconds, settings.knowledge_capacity, clock
            ),
            PROMPT_CACHE: VersionedCache(
                PROMPT_CACHE, settings.prompt_ttl_seconds, settings.prompt_capacity, clock
            ),
            QUOTE_CACHE: VersionedCache(
                QUOTE_CACHE, settings.quote_ttl_seconds, settings.quote_capacity, clock
            ),
        }

    def cache(self, cache_id: str) -> VersionedCache:
        """Get a cache by id.

        Raises:
            KeyError: If the cache id is unknown
        """
        return self._caches[cache_id]

    def get_or_compute(
        self,
        cache_id: str,
        key: Hashable,
        compute_fn: Callable[[], T],
        ttl_seconds: float | None = None,
    ) -> T:
        """Return the cached value for ``key`` or compute, store and return it.

        Args:
            cache_id: One of KNOWLEDGE_CACHE, PROMPT_CACHE, QUOTE_CACHE
            key: Cache key, bot-scoped keys start with the bot id
            compute_fn: Synchronous producer called on miss or expiry
            ttl_seconds: Override of the cache's default TTL

        Returns:
            Cached or freshly computed value
        """
        cache = self._caches[cache_id]
        value = cache.get(key, ttl_seconds=ttl_seconds, default=_MISSING)
        if value is not _MISSING:
            logger.debug(f"[{cache_id}] hit: {key}")
            return value

        logger.debug(f"[{cache_id}] miss: {key}")
        value = compute_fn()
        cache.set(key, value)
        return value

    def invalidate(self, bot_id: str) -> int:
        """Evict every knowledge and prompt entry of one bot.

        Returns:
            Number of entries removed
        """
        removed = self._caches[KNOWLEDGE_CACHE].invalidate(bot_id)
        removed += self._caches[PROMPT_CACHE].invalidate(bot_id)
        logger.info(f"Invalidated {removed} cached entries for bot {bot_id}")
        return removed

    def clear(self) -> None:
        for cache in self._caches.values():
            cache.clear()

    def stats(self) -> dict[str, dict[str, Any]]:
        return {name: cache.stats() for name, cache in self._caches.items()}


def knowledge_key(bot_id: str, version: int) -> tuple:
    return (bot_id, version)


def prompt_key(bot_id: str, version: int, platform: str, max_length: int | None) -> tuple:
    return (bot_id, version, platform, max_length)
