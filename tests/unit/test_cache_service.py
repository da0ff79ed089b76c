"""Tests for the versioned cache layer."""

import pytest

from chatcore.lib.cache_service import (
    KNOWLEDGE_CACHE,
    PROMPT_CACHE,
    QUOTE_CACHE,
    CacheService,
    VersionedCache,
    knowledge_key,
    prompt_key,
)
from chatcore.lib.config import CacheSettings


class Counter:
    def __init__(self, value="computed"):
        self.calls = 0
        self.value = value

    def __call__(self):
        self.calls += 1
        return f"{self.value}-{self.calls}"


def test_get_or_compute_hit(cache_service):
    compute = Counter()
    key = knowledge_key("bot-1", 1)

    first = cache_service.get_or_compute(KNOWLEDGE_CACHE, key, compute)
    second = cache_service.get_or_compute(KNOWLEDGE_CACHE, key, compute)

    assert first == second == "computed-1"
    assert compute.calls == 1


def test_version_change_is_a_miss(cache_service):
    compute = Counter()

    cache_service.get_or_compute(KNOWLEDGE_CACHE, knowledge_key("bot-1", 1), compute)
    cache_service.get_or_compute(KNOWLEDGE_CACHE, knowledge_key("bot-1", 2), compute)

    assert compute.calls == 2


def test_ttl_expiry(cache_service, clock):
    compute = Counter()
    key = knowledge_key("bot-1", 1)

    cache_service.get_or_compute(KNOWLEDGE_CACHE, key, compute)
    clock.advance(599)
    cache_service.get_or_compute(KNOWLEDGE_CACHE, key, compute)
    assert compute.calls == 1

    clock.advance(2)
    assert cache_service.get_or_compute(KNOWLEDGE_CACHE, key, compute) == "computed-2"


def test_ttl_override(cache_service, clock):
    compute = Counter()
    key = knowledge_key("bot-1", 1)

    cache_service.get_or_compute(KNOWLEDGE_CACHE, key, compute)
    clock.advance(10)
    cache_service.get_or_compute(KNOWLEDGE_CACHE, key, compute, ttl_seconds=5)

    assert compute.calls == 2


def test_quote_cache_ttl_is_short(cache_service, clock):
    quotes = cache_service.cache(QUOTE_CACHE)
    quotes.set("bitcoin", 65000.0)

    clock.advance(59)
    assert quotes.get("bitcoin") == 65000.0
    clock.advance(2)
    assert quotes.get("bitcoin") is None


def test_capacity_keeps_most_recent(clock):
    cache = VersionedCache("test", ttl_seconds=60, capacity=2, clock=clock)

    for name in ("a", "b", "c"):
        cache.set(name, name)
        clock.advance(1)

    assert "a" not in cache
    assert "b" in cache and "c" in cache
    assert len(cache) == 2


def test_rewrite_refreshes_creation_order(clock):
    cache = VersionedCache("test", ttl_seconds=60, capacity=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 3)
    cache.set("c", 4)

    assert "b" not in cache
    assert cache.get("a") == 3


def test_capacities_from_settings():
    service = CacheService(CacheSettings(knowledge_capacity=1, prompt_capacity=1))

    service.cache(KNOWLEDGE_CACHE).set(knowledge_key("a", 1), "x")
    service.cache(KNOWLEDGE_CACHE).set(knowledge_key("b", 1), "y")

    assert len(service.cache(KNOWLEDGE_CACHE)) == 1


def test_invalidate_removes_only_that_bot(cache_service):
    cache_service.cache(KNOWLEDGE_CACHE).set(knowledge_key("bot-1", 1), "k1")
    cache_service.cache(KNOWLEDGE_CACHE).set(knowledge_key("bot-2", 1), "k2")
    cache_service.cache(PROMPT_CACHE).set(prompt_key("bot-1", 1, "website", None), "p1")
    cache_service.cache(PROMPT_CACHE).set(prompt_key("bot-1", 1, "telegram", 8000), "p2")
    cache_service.cache(QUOTE_CACHE).set("bitcoin", 1.0)

    removed = cache_service.invalidate("bot-1")

    assert removed == 3
    assert knowledge_key("bot-2", 1) in cache_service.cache(KNOWLEDGE_CACHE)
    assert len(cache_service.cache(PROMPT_CACHE)) == 0
    assert "bitcoin" in cache_service.cache(QUOTE_CACHE)


def test_stats_count_hits_and_misses(cache_service):
    compute = Counter()
    key = knowledge_key("bot-1", 1)
    cache_service.get_or_compute(KNOWLEDGE_CACHE, key, compute)
    cache_service.get_or_compute(KNOWLEDGE_CACHE, key, compute)

    stats = cache_service.stats()[KNOWLEDGE_CACHE]

    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["size"] == 1
    assert stats["capacity"] == 100


def test_unknown_cache_id(cache_service):
    with pytest.raises(KeyError):
        cache_service.cache("nope")


def test_clear(cache_service):
    cache_service.cache(KNOWLEDGE_CACHE).set(knowledge_key("bot-1", 1), "k1")
    cache_service.clear()
    assert len(cache_service.cache(KNOWLEDGE_CACHE)) == 0
