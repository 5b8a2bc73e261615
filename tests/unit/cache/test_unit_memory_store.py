# tests/unit/cache/test_unit_memory_store.py — v1
"""Tests for cache/memory_store.py: LRU bound, TTL expiry, sweeps."""

from __future__ import annotations

import asyncio

import pytest

from vidbrief.cache.fingerprint import build_fingerprint
from vidbrief.cache.memory_store import LRUResultCache
from vidbrief.core.models import SummaryArtifact


def _fp(video_id: str):
    return build_fingerprint(video_id, "en", "summary", {"en"})


def _artifact(video_id: str) -> SummaryArtifact:
    return SummaryArtifact(video_id=video_id, language="en", summary_text=f"about {video_id}")


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_put_then_get(self, clock):
        cache = LRUResultCache(capacity=4, ttl_s=60, clock=clock)
        await cache.put(_fp("a"), _artifact("a"))
        assert await cache.get(_fp("a")) == _artifact("a")
        assert cache.stats().hits == 1

    @pytest.mark.asyncio
    async def test_miss(self, clock):
        cache = LRUResultCache(clock=clock)
        assert await cache.get(_fp("missing")) is None
        assert cache.stats().misses == 1

    @pytest.mark.asyncio
    async def test_put_replaces(self, clock):
        cache = LRUResultCache(capacity=2, ttl_s=60, clock=clock)
        await cache.put(_fp("a"), _artifact("a"))
        await cache.put(_fp("a"), _artifact("b"))
        assert len(cache) == 1
        assert (await cache.get(_fp("a"))).video_id == "b"


class TestExpiry:
    @pytest.mark.asyncio
    async def test_expired_is_miss_and_dropped(self, clock):
        cache = LRUResultCache(capacity=4, ttl_s=10, clock=clock)
        await cache.put(_fp("a"), _artifact("a"))
        clock.advance(9.9)
        assert await cache.get(_fp("a")) is not None
        clock.advance(0.1)
        assert await cache.get(_fp("a")) is None
        assert len(cache) == 0
        assert cache.stats().expirations == 1

    @pytest.mark.asyncio
    async def test_per_entry_ttl(self, clock):
        cache = LRUResultCache(capacity=4, ttl_s=100, clock=clock)
        await cache.put(_fp("short"), _artifact("short"), ttl_s=1)
        await cache.put(_fp("long"), _artifact("long"))
        clock.advance(2)
        assert await cache.get(_fp("short")) is None
        assert await cache.get(_fp("long")) is not None

    @pytest.mark.asyncio
    async def test_sweep_expired(self, clock):
        cache = LRUResultCache(capacity=4, ttl_s=10, clock=clock)
        await cache.put(_fp("a"), _artifact("a"))
        await cache.put(_fp("b"), _artifact("b"), ttl_s=30)
        clock.advance(15)
        assert await cache.sweep_expired() == 1
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_rejects_non_positive_ttl(self, clock):
        cache = LRUResultCache(clock=clock)
        with pytest.raises(ValueError):
            await cache.put(_fp("a"), _artifact("a"), ttl_s=0)


class TestEviction:
    @pytest.mark.asyncio
    async def test_size_never_exceeds_capacity(self, clock):
        cache = LRUResultCache(capacity=3, ttl_s=60, clock=clock)
        for i in range(10):
            await cache.put(_fp(f"v{i}"), _artifact(f"v{i}"))
            assert len(cache) <= 3
        assert cache.stats().evictions == 7

    @pytest.mark.asyncio
    async def test_evicts_least_recently_used(self, clock):
        cache = LRUResultCache(capacity=2, ttl_s=60, clock=clock)
        await cache.put(_fp("a"), _artifact("a"))
        await cache.put(_fp("b"), _artifact("b"))
        await cache.get(_fp("a"))
        await cache.put(_fp("c"), _artifact("c"))
        assert await cache.get(_fp("b")) is None
        assert await cache.get(_fp("a")) is not None
        assert await cache.get(_fp("c")) is not None

    @pytest.mark.asyncio
    async def test_expired_entries_freed_before_lru(self, clock):
        cache = LRUResultCache(capacity=2, ttl_s=60, clock=clock)
        await cache.put(_fp("old"), _artifact("old"))
        await cache.put(_fp("stale"), _artifact("stale"), ttl_s=1)
        clock.advance(5)
        await cache.put(_fp("new"), _artifact("new"))
        assert await cache.get(_fp("old")) is not None
        assert cache.stats().evictions == 0


class TestInvalidate:
    @pytest.mark.asyncio
    async def test_invalidate(self, clock):
        cache = LRUResultCache(clock=clock)
        await cache.put(_fp("a"), _artifact("a"))
        assert await cache.invalidate(_fp("a")) is True
        assert await cache.invalidate(_fp("a")) is False
        assert await cache.get(_fp("a")) is None
        assert cache.stats().invalidations == 1


class TestSweeper:
    @pytest.mark.asyncio
    async def test_sweeper_runs_and_stops(self, clock):
        cache = LRUResultCache(capacity=4, ttl_s=1, clock=clock)
        await cache.put(_fp("a"), _artifact("a"))
        clock.advance(2)
        cache.start_sweeper(0.01)
        for _ in range(50):
            if len(cache) == 0:
                break
            await asyncio.sleep(0.01)
        await cache.stop_sweeper()
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        await LRUResultCache().stop_sweeper()


class TestConstruction:
    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            LRUResultCache(capacity=0)

    def test_invalid_ttl(self):
        with pytest.raises(ValueError):
            LRUResultCache(ttl_s=0)
