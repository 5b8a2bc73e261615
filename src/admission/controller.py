# src/admission/controller.py — v2
"""Admission control: concurrency ceilings and per-caller rate limiting.

Two slot pools bound concurrent work (pipeline executions, external
calls); a rolling-window counter bounds accepted submissions per caller
identity. Every grant is an AdmissionToken whose release is idempotent,
so scoped use (``with token:`` / ``async with``) releases exactly once on
every exit path. A denial never mutates state.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from vidbrief.config.settings import Settings

logger = logging.getLogger(__name__)


class AdmissionKind(str, Enum):
    """What a token grants permission to run."""

    PIPELINE = "pipeline"
    EXTERNAL_CALL = "external_call"


@dataclass(frozen=True)
class AdmissionDenied:
    """Tagged denial returned instead of a token."""

    kind: AdmissionKind | None
    reason: str
    retry_after_s: float = 0.0


class _SlotPool:
    """Counting pool with non-blocking and suspending acquisition."""

    def __init__(self, kind: AdmissionKind, capacity: int) -> None:
        self.kind = kind
        self.capacity = capacity
        self.in_use = 0
        self._released = asyncio.Event()

    def try_take(self) -> bool:
        if self.in_use >= self.capacity:
            return False
        self.in_use += 1
        return True

    async def take(self) -> None:
        while not self.try_take():
            self._released.clear()
            await self._released.wait()

    def give_back(self) -> None:
        if self.in_use <= 0:
            raise RuntimeError(f"{self.kind.value} pool released more than acquired")
        self.in_use -= 1
        self._released.set()


@dataclass
class AdmissionToken:
    """Scoped lease on one slot of a pool."""

    kind: AdmissionKind
    _pool: _SlotPool = field(repr=False)
    _released: bool = field(default=False, repr=False)

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Return the slot; further calls are no-ops."""
        if self._released:
            return
        self._released = True
        self._pool.give_back()

    def __enter__(self) -> AdmissionToken:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    async def __aenter__(self) -> AdmissionToken:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.release()


class AdmissionController:
    """Bounds concurrent pipelines/external calls and per-caller rate.

    Args:
        max_pipelines: Ceiling on concurrently active pipeline executions.
        max_external_calls: Ceiling on concurrently active gateway calls.
        rate_limit: Accepted submissions allowed per caller per window.
        window_s: Rolling window length in seconds.
        clock: Monotonic seconds source; injectable for tests.
        prune_above: Tracked caller count above which callers with an
            expired window are forgotten.
    """

    def __init__(
        self,
        max_pipelines: int = 8,
        max_external_calls: int = 16,
        rate_limit: int = 10,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        prune_above: int = 1024,
    ) -> None:
        self._pools = {
            AdmissionKind.PIPELINE: _SlotPool(AdmissionKind.PIPELINE, max_pipelines),
            AdmissionKind.EXTERNAL_CALL: _SlotPool(
                AdmissionKind.EXTERNAL_CALL, max_external_calls
            ),
        }
        self._rate_limit = rate_limit
        self._window_s = window_s
        self._clock = clock
        self._accepted: dict[str, deque[float]] = {}
        self._prune_above = prune_above
        self._rate_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: Settings, clock: Callable[[], float] = time.monotonic
    ) -> AdmissionController:
        return cls(
            max_pipelines=settings.max_concurrent_pipelines,
            max_external_calls=settings.max_concurrent_external_calls,
            rate_limit=settings.rate_limit_per_caller,
            window_s=settings.rate_limit_window_s,
            clock=clock,
        )

    # --- Concurrency ---

    def try_acquire(
        self, kind: AdmissionKind, caller_id: str | None = None
    ) -> AdmissionToken | AdmissionDenied:
        """Grant a slot immediately or deny without side effects.

        ``caller_id`` only attributes a denial in the logs.
        """
        pool = self._pools[kind]
        if not pool.try_take():
            logger.warning(
                "Admission denied for %s: %s ceiling reached (%d/%d)",
                caller_id or "anonymous", kind.value, pool.in_use, pool.capacity,
            )
            return AdmissionDenied(
                kind=kind,
                reason=f"{kind.value} concurrency ceiling of {pool.capacity} reached",
            )
        return AdmissionToken(kind=kind, _pool=pool)

    async def acquire(self, kind: AdmissionKind) -> AdmissionToken:
        """Suspend until a slot is free. Cancellation leaves no slot held."""
        pool = self._pools[kind]
        await pool.take()
        return AdmissionToken(kind=kind, _pool=pool)

    def in_use(self, kind: AdmissionKind) -> int:
        return self._pools[kind].in_use

    # --- Rate ---

    def admit_submission(self, caller_id: str) -> AdmissionDenied | None:
        """Count one submission against the caller's rolling window.

        Returns None when accepted, AdmissionDenied when the caller has
        already used its allowance; denied submissions are not counted.
        """
        now = self._clock()
        with self._rate_lock:
            if len(self._accepted) > self._prune_above:
                self._prune_idle(now)
            window = self._accepted.get(caller_id)
            if window is None:
                window = self._accepted[caller_id] = deque()
            self._expire(window, now)
            if len(window) >= self._rate_limit:
                retry_after = window[0] + self._window_s - now
                logger.warning(
                    "Rate limit hit for caller %s (%d per %.0fs)",
                    caller_id, self._rate_limit, self._window_s,
                )
                return AdmissionDenied(
                    kind=None,
                    reason=f"more than {self._rate_limit} requests per {self._window_s:.0f}s",
                    retry_after_s=max(retry_after, 0.0),
                )
            window.append(now)
            return None

    def refund_submission(self, caller_id: str) -> None:
        """Uncount the caller's latest accepted submission (it never ran)."""
        with self._rate_lock:
            window = self._accepted.get(caller_id)
            if window:
                window.pop()
            if not window:
                self._accepted.pop(caller_id, None)

    def remaining(self, caller_id: str) -> int:
        """Submissions the caller may still make in the current window."""
        now = self._clock()
        with self._rate_lock:
            window = self._accepted.get(caller_id)
            if window is not None:
                self._expire(window, now)
                if not window:
                    del self._accepted[caller_id]
            return max(self._rate_limit - len(window or ()), 0)

    @property
    def tracked_callers(self) -> int:
        with self._rate_lock:
            return len(self._accepted)

    def _expire(self, window: deque[float], now: float) -> None:
        horizon = now - self._window_s
        while window and window[0] <= horizon:
            window.popleft()

    def _prune_idle(self, now: float) -> None:
        idle = []
        for caller_id, window in self._accepted.items():
            self._expire(window, now)
            if not window:
                idle.append(caller_id)
        for caller_id in idle:
            del self._accepted[caller_id]
        if idle:
            logger.debug("Forgot %d idle callers", len(idle))
