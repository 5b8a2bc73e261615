# src/pipeline/coordinator.py — v2
"""Single-flight coordinator: at most one execution per fingerprint.

The registry maps each in-flight fingerprint to its PipelineExecution.
submit() either joins the existing execution or, after pipeline admission,
creates one and starts a task that runs it. Every waiter owns a future
that the coordinator resolves with the shared outcome: the cache is
written first, then all waiters are released, then the execution leaves
the registry. Registry reads and writes happen between awaits only, so
they are atomic with respect to other tasks on the loop.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any

from vidbrief.admission.controller import (
    AdmissionController,
    AdmissionDenied,
    AdmissionKind,
    AdmissionToken,
)
from vidbrief.cache.base_cache_store import BaseResultCache
from vidbrief.core.errors import (
    ErrorKind,
    FatalError,
    RateLimitedError,
    VidbriefError,
    classify_exception,
)
from vidbrief.core.models import Artifact, Fingerprint
from vidbrief.logging.context import set_execution_context, set_stage_context
from vidbrief.pipeline.runner import PipelineCancelled, PipelineRunner
from vidbrief.pipeline.state import PipelineExecution, PipelineStage, Waiter

logger = logging.getLogger(__name__)


class PipelineCoordinator:
    """Collapse concurrent identical requests into one pipeline execution.

    Args:
        runner: Executes the external stages for one execution.
        cache: Result cache written on success before waiters are released.
        admission: Grants the PIPELINE slot each new execution holds.
        cache_ttl_s: TTL passed to cache.put (None = cache default).
    """

    def __init__(
        self,
        runner: PipelineRunner,
        cache: BaseResultCache,
        admission: AdmissionController,
        cache_ttl_s: float | None = None,
    ) -> None:
        self._runner = runner
        self._cache = cache
        self._admission = admission
        self._cache_ttl_s = cache_ttl_s
        self._active: dict[Fingerprint, PipelineExecution] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._started = 0
        self._joined = 0
        self._outcomes: dict[PipelineStage, int] = {
            PipelineStage.SUCCEEDED: 0,
            PipelineStage.FAILED: 0,
            PipelineStage.CANCELLED: 0,
        }

    # --- Introspection ---

    def active(self, fingerprint: Fingerprint) -> PipelineExecution | None:
        return self._active.get(fingerprint)

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def executions_started(self) -> int:
        return self._started

    @property
    def joins(self) -> int:
        return self._joined

    def outcome_counts(self) -> dict[str, int]:
        return {stage.value: count for stage, count in self._outcomes.items()}

    # --- Single-flight ---

    def submit(self, fingerprint: Fingerprint, caller_id: str = "anonymous") -> Waiter:
        """Join the in-flight execution for fingerprint or start one.

        An execution that has already stopped at a cancellation checkpoint
        is not joinable; it is detached from the registry and a fresh
        execution takes its place.

        Raises:
            RateLimitedError: No pipeline slot available for a new execution.
        """
        execution = self._active.get(fingerprint)
        if execution is not None and execution.cancel_committed:
            del self._active[fingerprint]
            logger.info(
                "Execution %s is winding down after cancellation; starting afresh for %s",
                execution.execution_id, caller_id,
            )
            execution = None
        if execution is not None:
            self._joined += 1
            waiter = self._join(execution, caller_id)
            logger.info(
                "Caller %s joined execution %s for %s (%d waiting)",
                caller_id, execution.execution_id, fingerprint.short, len(execution.waiters),
            )
            return waiter

        grant = self._admission.try_acquire(AdmissionKind.PIPELINE, caller_id)
        if isinstance(grant, AdmissionDenied):
            raise RateLimitedError(grant.reason, fingerprint=fingerprint.key)

        execution = self._start(fingerprint, grant)
        waiter = self._join(execution, caller_id)
        logger.info(
            "Started execution %s for %s (%s/%s) on behalf of %s",
            execution.execution_id, fingerprint.short, fingerprint.kind.value,
            fingerprint.language, caller_id,
        )
        return waiter

    def withdraw(self, waiter: Waiter) -> bool:
        """Remove a waiter; cancel the execution if it was the last one.

        Returns True if the waiter was still registered.
        """
        execution = self._active.get(waiter.fingerprint)
        if execution is None or execution.waiters.pop(waiter.waiter_id, None) is None:
            return False
        if not waiter.future.done():
            waiter.future.cancel()
        if not execution.waiters and not execution.terminal:
            execution.cancelled = True
            logger.info(
                "Last caller withdrew from execution %s (%s); cancelling",
                execution.execution_id, execution.state.value,
            )
        return True

    async def aclose(self) -> None:
        """Cancel running executions and wait for them and their cleanups."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._runner.drain()

    # --- Internals ---

    def _start(self, fingerprint: Fingerprint, grant: AdmissionToken) -> PipelineExecution:
        execution = PipelineExecution(fingerprint=fingerprint)
        self._active[fingerprint] = execution
        self._started += 1
        task = asyncio.get_running_loop().create_task(
            self._drive(execution, grant), name=f"vidbrief-{execution.execution_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return execution

    def _join(self, execution: PipelineExecution, caller_id: str) -> Waiter:
        if execution.cancelled:
            execution.cancelled = False
            logger.info("Execution %s revived by caller %s", execution.execution_id, caller_id)
        waiter = Waiter(
            caller_id=caller_id,
            future=asyncio.get_running_loop().create_future(),
            fingerprint=execution.fingerprint,
        )
        execution.waiters[waiter.waiter_id] = waiter
        return waiter

    async def _drive(self, execution: PipelineExecution, token: AdmissionToken) -> None:
        set_execution_context(execution.fingerprint.key, execution.execution_id)
        with token:
            stranded = await self._settle(execution)
        if stranded:
            self._rehome(execution.fingerprint, stranded)

    async def _settle(self, execution: PipelineExecution) -> list[Waiter]:
        """Run to a terminal state; return waiters a cancellation left unresolved."""
        fp = execution.fingerprint
        try:
            artifact = await self._runner.run(execution)
        except PipelineCancelled:
            return self._cancel(execution)
        except asyncio.CancelledError:
            self._fail(execution, FatalError("coordinator shut down", fingerprint=fp.key))
            raise
        except Exception as exc:  # noqa: BLE001
            if execution.cancelled:
                logger.debug(
                    "Execution %s failed after every caller withdrew: %r",
                    execution.execution_id, exc,
                )
                return self._cancel(execution)
            self._fail(
                execution,
                classify_exception(exc, fingerprint=fp.key, stage=execution.state.value),
            )
            return []

        if execution.cancelled:
            return self._cancel(execution)

        try:
            await self._cache.put(fp, artifact, self._cache_ttl_s)
        except Exception as exc:  # noqa: BLE001
            self._fail(execution, classify_exception(exc, fingerprint=fp.key, stage="caching"))
            return []
        self._succeed(execution, artifact)
        return []

    def _succeed(self, execution: PipelineExecution, artifact: Artifact) -> None:
        execution.result = artifact
        for waiter in execution.waiters.values():
            if not waiter.future.done():
                waiter.future.set_result(artifact)
        self._finish(execution, PipelineStage.SUCCEEDED)

    def _cancel(self, execution: PipelineExecution) -> list[Waiter]:
        stranded = [w for w in execution.waiters.values() if not w.future.done()]
        execution.waiters.clear()
        self._finish(execution, PipelineStage.CANCELLED)
        return stranded

    def _rehome(self, fingerprint: Fingerprint, waiters: list[Waiter]) -> None:
        """Hand waiters of a cancelled execution to a live one, or fail them."""
        target = self._active.get(fingerprint)
        if target is None or target.cancel_committed:
            grant = self._admission.try_acquire(AdmissionKind.PIPELINE, waiters[0].caller_id)
            if isinstance(grant, AdmissionDenied):
                error = RateLimitedError(grant.reason, fingerprint=fingerprint.key)
                for waiter in waiters:
                    waiter.future.set_exception(_clone_error(error))
                return
            target = self._start(fingerprint, grant)
        target.cancelled = False
        for waiter in waiters:
            target.waiters[waiter.waiter_id] = waiter
        logger.info(
            "Moved %d waiter(s) from a cancelled execution to %s",
            len(waiters), target.execution_id,
        )

    def _fail(self, execution: PipelineExecution, error: VidbriefError) -> None:
        execution.error = error
        if error.kind is ErrorKind.FATAL:
            logger.error(
                "Execution %s failed at %s: %r (%.2fs elapsed)",
                execution.execution_id, execution.state.value, error, execution.elapsed_s(),
                exc_info=error,
            )
        else:
            logger.warning(
                "Execution %s failed at %s: %s (%s, %.2fs elapsed)",
                execution.execution_id, execution.state.value, error.message,
                error.kind.value, execution.elapsed_s(),
            )
        for waiter in execution.waiters.values():
            if not waiter.future.done():
                waiter.future.set_exception(_clone_error(error))
        self._finish(execution, PipelineStage.FAILED)

    def _finish(self, execution: PipelineExecution, terminal: PipelineStage) -> None:
        execution.transition(terminal)
        set_stage_context(terminal.value)
        self._outcomes[terminal] += 1
        if self._active.get(execution.fingerprint) is execution:
            del self._active[execution.fingerprint]
        logger.info(
            "Execution %s %s after %.2fs (%s)",
            execution.execution_id, terminal.value, execution.elapsed_s(),
            " -> ".join(stage.value for stage in execution.stages),
        )


def _clone_error(error: VidbriefError) -> VidbriefError:
    """Per-waiter copy so each awaiting task gets its own traceback."""
    clone = copy.copy(error)
    clone.__cause__ = error.__cause__
    return clone
