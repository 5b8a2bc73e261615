# src/cache/cache_factory.py — v3
"""Factory for result cache instantiation."""

from __future__ import annotations

import time
from collections.abc import Callable

from vidbrief.cache.memory_store import LRUResultCache
from vidbrief.config.settings import Settings


def create_result_cache(
    settings: Settings | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> LRUResultCache:
    """Build the per-process result cache.

    One instance is constructed per service and injected everywhere it is
    needed; capacity and TTL are fixed at construction.

    Args:
        settings: Application settings. Defaults to built-in bounds.
        clock: Monotonic seconds source.
    """
    if settings is None:
        return LRUResultCache(clock=clock)
    return LRUResultCache(
        capacity=settings.cache_capacity,
        ttl_s=settings.cache_ttl_s,
        clock=clock,
    )
