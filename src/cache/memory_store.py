# src/cache/memory_store.py — v1
"""Bounded in-process result cache with TTL expiry and LRU eviction.

Backed by an OrderedDict whose order is recency (oldest first). One lock
guards every read-modify-write so that recency order and size accounting
stay consistent under concurrent tasks or threads. The cache is
non-durable: a process restart clears it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from vidbrief.cache.base_cache_store import BaseResultCache
from vidbrief.cache.models import CacheEntry, CacheStats
from vidbrief.core.models import Artifact, Fingerprint

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100
DEFAULT_TTL_S = 3600.0


class LRUResultCache(BaseResultCache):
    """In-memory LRU + TTL store keyed by fingerprint.

    Args:
        capacity: Maximum number of entries held at any time.
        ttl_s: Default time-to-live applied by put().
        clock: Monotonic seconds source; injectable for tests.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        ttl_s: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if ttl_s <= 0:
            raise ValueError("ttl_s must be > 0")
        self._capacity = capacity
        self._ttl_s = ttl_s
        self._clock = clock
        self._entries: OrderedDict[Fingerprint, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._sweeper: asyncio.Task[None] | None = None

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._invalidations = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def ttl_s(self) -> float:
        return self._ttl_s

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get(self, fingerprint: Fingerprint) -> Artifact | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                self._misses += 1
                return None
            if not entry.is_live(now):
                del self._entries[fingerprint]
                self._expirations += 1
                self._misses += 1
                return None
            self._entries.move_to_end(fingerprint)
            self._hits += 1
            return entry.payload

    async def put(
        self, fingerprint: Fingerprint, payload: Artifact, ttl_s: float | None = None
    ) -> None:
        ttl = self._ttl_s if ttl_s is None else ttl_s
        if ttl <= 0:
            raise ValueError("ttl_s must be > 0")
        now = self._clock()
        entry = CacheEntry(
            fingerprint=fingerprint,
            payload=payload,
            created_at=now,
            expires_at=now + ttl,
        )
        with self._lock:
            if fingerprint in self._entries:
                self._entries[fingerprint] = entry
                self._entries.move_to_end(fingerprint)
                return
            if len(self._entries) >= self._capacity:
                self._make_room(now)
            self._entries[fingerprint] = entry

        logger.debug("Cached %s (%s), expires in %.0fs", fingerprint.short, fingerprint.kind.value, ttl)

    async def invalidate(self, fingerprint: Fingerprint) -> bool:
        with self._lock:
            removed = self._entries.pop(fingerprint, None) is not None
            if removed:
                self._invalidations += 1
        if removed:
            logger.info("Invalidated cache entry %s", fingerprint.short)
        return removed

    async def sweep_expired(self) -> int:
        now = self._clock()
        with self._lock:
            dropped = self._drop_expired(now)
        if dropped:
            logger.debug("Sweep dropped %d expired entries", dropped)
        return dropped

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                capacity=self._capacity,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                invalidations=self._invalidations,
            )

    # --- Background sweeper ---

    def start_sweeper(self, interval_s: float) -> None:
        """Start periodic expiry sweeps on the running loop (idempotent)."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(
            self._sweep_loop(interval_s), name="vidbrief-cache-sweeper"
        )

    async def stop_sweeper(self) -> None:
        """Cancel the sweeper task and wait for it to exit."""
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _sweep_loop(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            await self.sweep_expired()

    # --- Internals (caller holds the lock) ---

    def _make_room(self, now: float) -> None:
        """Free one slot: expired entries go first, then the LRU entry."""
        if self._drop_expired(now):
            return
        evicted, _ = self._entries.popitem(last=False)
        self._evictions += 1
        logger.debug("Evicted LRU entry %s", evicted.short)

    def _drop_expired(self, now: float) -> int:
        expired = [fp for fp, entry in self._entries.items() if not entry.is_live(now)]
        for fp in expired:
            del self._entries[fp]
        self._expirations += len(expired)
        return len(expired)
