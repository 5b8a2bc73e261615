# src/cache/models.py — v2
"""Cache domain models: CacheEntry, CacheStats."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from vidbrief.core.models import Artifact, Fingerprint


class CacheEntry(BaseModel):
    """Single completed artifact held by the result cache.

    Timestamps are monotonic-clock seconds, not wall-clock datetimes.
    """

    model_config = ConfigDict(frozen=True)

    fingerprint: Fingerprint
    payload: Artifact
    created_at: float
    expires_at: float

    def is_live(self, now: float) -> bool:
        """Strict: an entry is servable only while now < expires_at."""
        return now < self.expires_at


class CacheStats(BaseModel):
    """Counters exposed by a result cache."""

    size: int
    capacity: int
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    invalidations: int = 0
