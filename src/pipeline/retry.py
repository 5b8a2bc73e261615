# src/pipeline/retry.py — v2
"""Stage-level retry with exponential backoff, and the polling schedule.

Only retryable failures (TRANSIENT, RATE_LIMITED) are retried, and only
inside the stage that observed them; pipelines are never retried as a
whole. Sleeps go through an injectable coroutine so tests can run the
schedule against a fake clock.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Any, TypeVar

from vidbrief.core.outcomes import Failure, Ok, Outcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryConfig:
    """Bounded retry policy for one stage."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number attempt (0-based)."""
        delay = self.base_delay_s * (self.backoff_factor ** attempt)
        if self.jitter:
            delay *= 0.5 + random.random()  # noqa: S311
        return delay


NO_RETRY = RetryConfig(max_retries=0, base_delay_s=0.0, jitter=False)


@dataclass(frozen=True)
class BackoffSchedule:
    """Exponential, capped delay sequence used between status polls.

    ``list(schedule.delays(5))`` with the defaults yields
    ``[1.0, 2.0, 4.0, 8.0, 8.0]``.
    """

    initial_s: float = 1.0
    factor: float = 2.0
    max_s: float = 8.0

    def delays(self, limit: int | None = None) -> Iterator[float]:
        delay = self.initial_s
        emitted = 0
        while limit is None or emitted < limit:
            yield min(delay, self.max_s)
            emitted += 1
            delay *= self.factor


async def retry_outcome(
    call: Callable[[], Awaitable[Outcome[T]]],
    config: RetryConfig,
    *,
    label: str,
    sleep: Sleep = asyncio.sleep,
    on_attempt: Callable[[int, Outcome[T]], None] | None = None,
) -> Outcome[T]:
    """Invoke call until Ok, a non-retryable Failure, or retries run out.

    Args:
        call: Zero-argument coroutine factory returning a tagged outcome.
        config: Retry policy.
        label: Stage name for log lines.
        sleep: Suspension used between attempts.
        on_attempt: Hook receiving (attempt number, outcome) for each attempt.

    Returns:
        The last outcome observed.
    """
    attempt = 0
    while True:
        attempt += 1
        outcome = await call()
        if on_attempt is not None:
            on_attempt(attempt, outcome)
        if isinstance(outcome, Ok):
            return outcome
        if not isinstance(outcome, Failure):
            raise TypeError(f"{label}: gateway returned {type(outcome).__name__}, not an outcome")
        if not outcome.retryable or attempt > config.max_retries:
            return outcome

        delay = config.delay_for(attempt - 1)
        logger.warning(
            "Stage '%s' failed with %s (attempt %d/%d), retrying in %.1fs",
            label, outcome.kind.value, attempt, config.max_retries + 1, delay,
        )
        await sleep(delay)
