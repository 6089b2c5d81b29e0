"""Tests for the bounded TTL cache."""

from __future__ import annotations

import pytest

from conftest import FakeClock
from memewatch.ingestor.cache import TTLCache


class TestTTLCache:
    def test_rejects_zero_size(self) -> None:
        with pytest.raises(ValueError):
            TTLCache(max_size=0)

    def test_expiry_on_read(self, clock: FakeClock) -> None:
        cache: TTLCache[str, int] = TTLCache(max_size=10, ttl_seconds=60, clock=clock)
        cache.set("a", 1)
        clock.advance(59)
        assert cache.get("a") == 1
        clock.advance(2)
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_size_bound_evicts_least_recently_used(self, clock: FakeClock) -> None:
        cache: TTLCache[str, int] = TTLCache(max_size=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_add_only_inserts_when_absent(self, clock: FakeClock) -> None:
        cache: TTLCache[str, int] = TTLCache(max_size=10, ttl_seconds=10, clock=clock)
        assert cache.add("a", 1) is True
        assert cache.add("a", 2) is False
        assert cache.get("a") == 1
        clock.advance(11)
        assert cache.add("a", 3) is True

    def test_sweep_drops_expired(self, clock: FakeClock) -> None:
        cache: TTLCache[str, int] = TTLCache(max_size=10, ttl_seconds=10, clock=clock)
        cache.set("old", 1)
        clock.advance(8)
        cache.set("new", 2)
        clock.advance(5)
        assert cache.sweep() == 1
        assert cache.get("new") == 2

    def test_sweep_without_ttl_is_noop(self) -> None:
        cache: TTLCache[str, int] = TTLCache(max_size=10)
        cache.set("a", 1)
        assert cache.sweep() == 0

    def test_pop_and_clear(self, clock: FakeClock) -> None:
        cache: TTLCache[str, int] = TTLCache(max_size=10, ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.pop("a") == 1
        assert cache.pop("a") is None
        cache.clear()
        assert len(cache) == 0

    def test_expired_entry_is_not_contained(self, clock: FakeClock) -> None:
        cache: TTLCache[str, int] = TTLCache(max_size=10, ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        clock.advance(11)
        assert "a" not in cache
        assert cache.sweep() == 1
