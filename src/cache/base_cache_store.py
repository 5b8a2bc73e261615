# src/cache/base_cache_store.py — v2
"""Abstract result cache interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from vidbrief.cache.models import CacheStats
from vidbrief.core.models import Artifact, Fingerprint


class BaseResultCache(ABC):
    """Unified interface for result cache backends."""

    @abstractmethod
    async def get(self, fingerprint: Fingerprint) -> Artifact | None:
        """Return the live payload or None; a hit refreshes recency."""

    @abstractmethod
    async def put(
        self, fingerprint: Fingerprint, payload: Artifact, ttl_s: float | None = None
    ) -> None:
        """Store payload with absolute expiry now + ttl."""

    @abstractmethod
    async def invalidate(self, fingerprint: Fingerprint) -> bool:
        """Remove an entry; True if something was removed."""

    @abstractmethod
    async def sweep_expired(self) -> int:
        """Drop all expired entries; return how many were dropped."""

    @abstractmethod
    def stats(self) -> CacheStats:
        """Current counters."""
