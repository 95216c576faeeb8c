"""Tests for the TTL summary cache."""

import pytest

from backend.cache import SummaryCache


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return SummaryCache(ttl_seconds=60, clock=clock)


def test_make_key_is_stable():
    a = SummaryCache.make_key("summary", email="ada@example.com", course="c1")
    b = SummaryCache.make_key("summary", course="c1", email="ada@example.com")
    assert a == b
    assert a.startswith("summary:")
    assert a != SummaryCache.make_key("summary", email="bob@example.com", course="c1")


def test_get_set(cache):
    assert cache.get("k") is None
    cache.set("k", {"score": 80})
    assert cache.get("k") == {"score": 80}


def test_entries_expire(cache, clock):
    cache.set("k", 1)
    clock.advance(60)
    assert cache.get("k") == 1
    clock.advance(1)
    assert cache.get("k") is None
    assert cache.stats()["total_keys"] == 0


def test_cached_computes_once(cache):
    calls = []

    def compute(x):
        calls.append(x)
        return x * 2

    assert cache.cached("k", compute, 21) == 42
    assert cache.cached("k", compute, 21) == 42
    assert calls == [21]


def test_invalidate_and_clear(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    cache.clear_all()
    assert cache.get("b") is None


def test_stats_counts_alive_keys(cache, clock):
    cache.set("old", 1)
    clock.advance(120)
    cache.set("new", 2)
    assert cache.stats() == {"total_keys": 2, "alive_keys": 1, "ttl_seconds": 60}


def test_injected_store_is_used(clock):
    store = {}
    cache = SummaryCache(ttl_seconds=60, store=store, clock=clock)
    cache.set("k", "v")
    assert store["k"] == {"value": "v", "ts": 1000.0}
