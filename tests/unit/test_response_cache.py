from __future__ import annotations

from homehub_ai.core.cache.response_cache import ResponseCache, fingerprint
from homehub_ai.core.inference.base import Capability, ChatTurn, NormalizedResult


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_cache_hit_miss_and_lazy_expiry():
    clock = Clock()
    cache = ResponseCache(default_ttl_seconds=10, clock=clock)
    value = NormalizedResult(text="positive", confidence=0.9)

    assert cache.get("k") == (None, False)
    cache.put("k", value)
    assert cache.get("k") == (value, True)

    clock.now = 10.0
    assert cache.get("k") == (None, False)
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 2
    assert stats["evictions"] == 1
    assert stats["size"] == 0


def test_cache_per_call_ttl_and_replace_only():
    clock = Clock()
    cache = ResponseCache(default_ttl_seconds=10, clock=clock)
    cache.put("k", NormalizedResult(text="old"), ttl_seconds=100)
    cache.put("k", NormalizedResult(text="new"), ttl_seconds=100)
    clock.now = 50.0
    value, found = cache.get("k")
    assert found and value.text == "new"
    assert len(cache) == 1


def test_cache_evicts_oldest_when_full_and_sweeps_expired():
    clock = Clock()
    cache = ResponseCache(default_ttl_seconds=5, max_entries=2, clock=clock)
    cache.put("a", NormalizedResult(text="a"))
    cache.put("b", NormalizedResult(text="b"), ttl_seconds=60)
    cache.put("c", NormalizedResult(text="c"), ttl_seconds=60)
    assert cache.get("a") == (None, False)
    assert cache.get("c")[1] is True

    clock.now = 61.0
    assert cache.sweep() == 2
    assert len(cache) == 0

    cache.put("d", NormalizedResult(text="d"))
    cache.clear()
    assert cache.stats()["size"] == 0


def test_fingerprint_is_deterministic_and_input_sensitive():
    base = fingerprint(Capability.SENTIMENT, "I love  this app ", params={"b": 1, "a": 2})
    assert base == fingerprint("sentiment", "I love this app", params={"a": 2, "b": 1})
    assert len(base) == 64

    assert base != fingerprint(Capability.CLASSIFY, "I love this app", params={"a": 2, "b": 1})
    assert base != fingerprint(Capability.SENTIMENT, "I love this app", context="kitchen", params={"a": 2, "b": 1})
    with_history = fingerprint(
        Capability.SENTIMENT,
        "I love this app",
        history=[ChatTurn(sender="user", message="hi")],
        params={"a": 2, "b": 1},
    )
    assert base != with_history
