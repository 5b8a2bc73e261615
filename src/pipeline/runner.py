# src/pipeline/runner.py — v2
"""Pipeline runner: advance one execution through every external stage.

Walks a PipelineExecution through metadata → upload → processing poll →
generation → cleanup, enforcing:
  - per-stage timeouts and the overall pipeline deadline
  - bounded stage-local retry of retryable gateway failures
  - exactly one retry of the generation call on MalformedResult
  - one cleanup attempt for every uploaded handle, on every path

The runner never touches the result cache or the waiters; it returns the
validated artifact or raises a classified VidbriefError and leaves the
terminal transition to the coordinator.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from vidbrief.admission.controller import AdmissionController, AdmissionKind
from vidbrief.config.settings import Settings
from vidbrief.core.errors import (
    ErrorKind,
    MalformedResultError,
    PipelineTimeoutError,
    error_from_failure,
)
from vidbrief.core.models import Artifact
from vidbrief.core.outcomes import Failure, Ok, Outcome
from vidbrief.gateways.base import Gateways
from vidbrief.gateways.models import GenerationRequest, MediaHandle, ProcessingStatus
from vidbrief.logging.context import set_stage_context
from vidbrief.pipeline.prompts import build_prompt, response_schema
from vidbrief.pipeline.retry import BackoffSchedule, RetryConfig, Sleep, retry_outcome
from vidbrief.pipeline.state import PipelineExecution, PipelineStage
from vidbrief.pipeline.validation import parse_artifact
from vidbrief.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PipelineCancelled(Exception):
    """Every waiter withdrew; the execution stops at the next checkpoint."""


class PipelineRunner:
    """Execute the external-call sequence for one fingerprint.

    Args:
        gateways: Metadata, media and generation collaborators.
        settings: Deadlines, retry bounds and backoff schedule.
        admission: Grants EXTERNAL_CALL slots around each gateway call.
        call_logger: Optional per-call tracking.
        sleep: Suspension used for retry backoff and poll intervals.
    """

    def __init__(
        self,
        gateways: Gateways,
        settings: Settings,
        admission: AdmissionController,
        call_logger: CallLogger | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._gateways = gateways
        self._settings = settings
        self._admission = admission
        self._call_logger = call_logger
        self._sleep = sleep
        self._background: set[asyncio.Task[Any]] = set()

        self._stage_retry = RetryConfig(
            max_retries=settings.stage_max_retries,
            base_delay_s=settings.stage_retry_base_delay_s,
            backoff_factor=settings.stage_retry_backoff_factor,
        )
        self._cleanup_retry = RetryConfig(
            max_retries=settings.cleanup_max_retries,
            base_delay_s=settings.stage_retry_base_delay_s,
            backoff_factor=settings.stage_retry_backoff_factor,
        )
        self.poll_schedule = BackoffSchedule(
            initial_s=settings.poll_initial_delay_s,
            factor=settings.poll_backoff_factor,
            max_s=settings.poll_max_delay_s,
        )

    # --- Public ---

    async def run(self, execution: PipelineExecution) -> Artifact:
        """Drive execution up to CLEANING_UP and return the artifact.

        Raises:
            VidbriefError: Classified failure of any stage or the deadline.
            PipelineCancelled: All waiters withdrew.
        """
        fp = execution.fingerprint
        try:
            return await asyncio.wait_for(
                self._advance(execution), timeout=self._settings.pipeline_deadline_s
            )
        except asyncio.TimeoutError as exc:
            raise PipelineTimeoutError(
                f"pipeline deadline of {self._settings.pipeline_deadline_s:g}s exceeded",
                fingerprint=fp.key,
                stage=execution.state.value,
            ) from exc
        finally:
            if execution.handle is not None and not execution.cleanup_attempted:
                self._schedule_cleanup(execution, execution.handle)

    async def drain(self) -> None:
        """Wait for background cleanups scheduled by earlier runs."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    @property
    def pending_cleanups(self) -> int:
        return len(self._background)

    # --- Stages ---

    async def _advance(self, execution: PipelineExecution) -> Artifact:
        fp = execution.fingerprint

        self._enter(execution, PipelineStage.METADATA_FETCHING)
        execution.metadata = await self._stage(
            execution,
            "metadata",
            "fetch",
            lambda: self._gateways.metadata.fetch(fp.video_id),
            timeout_s=self._settings.metadata_timeout_s,
        )

        self._enter(execution, PipelineStage.MEDIA_UPLOADING)
        handle = await self._upload(execution)
        execution.handle = handle

        self._enter(execution, PipelineStage.MEDIA_PROCESSING)
        await self._await_active(execution, handle)

        self._enter(execution, PipelineStage.GENERATING)
        generation_error: Exception | None = None
        artifact: Artifact | None = None
        try:
            artifact = await self._generate(execution, handle)
        except Exception as exc:  # noqa: BLE001
            generation_error = exc

        execution.transition(PipelineStage.CLEANING_UP)
        set_stage_context(PipelineStage.CLEANING_UP.value)
        await self._cleanup_inline(execution, handle)

        if generation_error is not None:
            raise generation_error
        self._checkpoint(execution)
        assert artifact is not None
        return artifact

    async def _upload(self, execution: PipelineExecution) -> MediaHandle:
        fp = execution.fingerprint
        duration = execution.metadata.duration_seconds if execution.metadata else None
        timeout_s = self._settings.upload_timeout_for(duration)
        attempts = 0

        async def attempt() -> Outcome[MediaHandle]:
            nonlocal attempts
            attempts += 1
            task = asyncio.ensure_future(
                self._call(
                    execution,
                    "media",
                    "upload",
                    lambda: self._gateways.media.upload(fp.video_id),
                    attempt=attempts,
                )
            )
            try:
                return await asyncio.shield(task)
            except asyncio.CancelledError:
                # Let the upload land, then delete whatever it produced.
                task.add_done_callback(functools.partial(self._on_orphan_upload, execution))
                raise

        return await self._bounded(execution, "upload", timeout_s, attempt)

    async def _await_active(self, execution: PipelineExecution, handle: MediaHandle) -> None:
        delays = self.poll_schedule.delays()

        async def poll_loop() -> Outcome[None]:
            polls = 0
            while True:
                self._checkpoint(execution)
                polls += 1
                outcome = await retry_outcome(
                    functools.partial(
                        self._call,
                        execution,
                        "media",
                        "poll_status",
                        lambda: self._gateways.media.poll_status(handle),
                        attempt=polls,
                    ),
                    self._stage_retry,
                    label="poll_status",
                    sleep=self._sleep,
                )
                if isinstance(outcome, Failure):
                    return outcome
                status = outcome.value
                if status is ProcessingStatus.ACTIVE:
                    logger.debug("Handle %s active after %d polls", handle.name, polls)
                    return Ok(None)
                if status is ProcessingStatus.FAILED:
                    return Failure(ErrorKind.TRANSIENT, f"media processing failed for {handle.name}")
                delay = next(delays)
                logger.debug("Handle %s pending, next poll in %.1fs", handle.name, delay)
                await self._sleep(delay)

        await self._bounded(
            execution, "media_processing", self._settings.poll_deadline_s, poll_loop, retry=False
        )

    async def _generate(self, execution: PipelineExecution, handle: MediaHandle) -> Artifact:
        fp = execution.fingerprint
        request = GenerationRequest(
            handle=handle,
            language=fp.language,
            kind=fp.kind,
            prompt=build_prompt(fp.kind, fp.language, execution.metadata),
            response_schema=response_schema(fp.kind),
            structured_output=True,
        )
        allowed = self._settings.malformed_result_retries
        for attempt in range(allowed + 1):
            raw = await self._stage(
                execution,
                "generation",
                "generate",
                lambda: self._gateways.generation.generate(request),
                timeout_s=self._settings.generation_timeout_s,
            )
            try:
                return parse_artifact(raw, fp, execution.metadata)
            except MalformedResultError as exc:
                exc.with_context(fingerprint=fp.key, stage=PipelineStage.GENERATING.value)
                if attempt >= allowed or execution.cancelled:
                    raise
                logger.warning(
                    "Malformed %s result (%s), retrying generation (%d/%d)",
                    fp.kind.value, exc.message, attempt + 1, allowed,
                )
        raise AssertionError("unreachable")

    # --- Cleanup ---

    async def _cleanup_inline(self, execution: PipelineExecution, handle: MediaHandle) -> None:
        """Delete the handle before releasing waiters; survives deadline cancellation."""
        execution.cleanup_attempted = True
        task = self._track(self._delete_handle(execution, handle))
        await asyncio.shield(task)

    def _schedule_cleanup(self, execution: PipelineExecution, handle: MediaHandle) -> None:
        execution.cleanup_attempted = True
        logger.info("Scheduling background cleanup of %s", handle.name)
        self._track(self._delete_handle(execution, handle))

    def _on_orphan_upload(self, execution: PipelineExecution, task: asyncio.Future) -> None:
        if task.cancelled() or task.exception() is not None:
            return
        outcome = task.result()
        if isinstance(outcome, Ok):
            logger.info("Upload finished after stage was abandoned; deleting %s", outcome.value.name)
            execution.handle = outcome.value
            self._schedule_cleanup(execution, outcome.value)

    async def _delete_handle(self, execution: PipelineExecution, handle: MediaHandle) -> None:
        """Best-effort delete with bounded retries; never raises."""
        attempts = 0

        async def attempt() -> Outcome[None]:
            nonlocal attempts
            attempts += 1
            try:
                return await asyncio.wait_for(
                    self._call(
                        execution,
                        "media",
                        "delete",
                        lambda: self._gateways.media.delete(handle),
                        attempt=attempts,
                    ),
                    timeout=self._settings.cleanup_timeout_s,
                )
            except asyncio.TimeoutError:
                return Failure(ErrorKind.TRANSIENT, "delete timed out")

        outcome = await retry_outcome(attempt, self._cleanup_retry, label="cleanup", sleep=self._sleep)
        if isinstance(outcome, Failure):
            logger.error(
                "Cleanup of %s failed after %d attempts (%s): %s",
                handle.name, attempts, outcome.kind.value, outcome.detail,
            )
        else:
            logger.debug("Deleted %s", handle.name)

    # --- Helpers ---

    def _enter(self, execution: PipelineExecution, stage: PipelineStage) -> None:
        self._checkpoint(execution)
        execution.transition(stage)
        set_stage_context(stage.value)
        logger.debug(
            "Execution %s -> %s (%.2fs elapsed)",
            execution.execution_id, stage.value, execution.elapsed_s(),
        )

    @staticmethod
    def _checkpoint(execution: PipelineExecution) -> None:
        """Stop here if every waiter withdrew; no caller can revive it afterwards."""
        if execution.cancelled:
            execution.cancel_committed = True
            raise PipelineCancelled(execution.execution_id)

    async def _stage(
        self,
        execution: PipelineExecution,
        gateway: str,
        operation: str,
        factory: Callable[[], Awaitable[Outcome[T]]],
        *,
        timeout_s: float,
    ) -> T:
        """One gateway call with stage retry, under a stage timeout."""
        attempts = 0

        async def attempt() -> Outcome[T]:
            nonlocal attempts
            attempts += 1
            return await self._call(execution, gateway, operation, factory, attempt=attempts)

        return await self._bounded(execution, operation, timeout_s, attempt)

    async def _bounded(
        self,
        execution: PipelineExecution,
        label: str,
        timeout_s: float,
        attempt: Callable[[], Awaitable[Outcome[T]]],
        *,
        retry: bool = True,
    ) -> T:
        """Run attempt (with stage retry unless disabled) within timeout_s; unwrap or raise."""
        policy = self._stage_retry if retry else None
        fp = execution.fingerprint
        stage = execution.state.value

        async def guarded() -> Outcome[T]:
            if policy is None:
                return await attempt()
            return await retry_outcome(attempt, policy, label=label, sleep=self._sleep)

        try:
            outcome = await asyncio.wait_for(guarded(), timeout=timeout_s)
        except asyncio.TimeoutError as exc:
            raise PipelineTimeoutError(
                f"{label} exceeded {timeout_s:.1f}s", fingerprint=fp.key, stage=stage
            ) from exc

        if isinstance(outcome, Failure):
            raise error_from_failure(outcome, fingerprint=fp.key, stage=stage)
        return outcome.value

    async def _call(
        self,
        execution: PipelineExecution,
        gateway: str,
        operation: str,
        factory: Callable[[], Awaitable[Outcome[T]]],
        *,
        attempt: int = 1,
    ) -> Outcome[T]:
        """One gateway invocation under an EXTERNAL_CALL slot, tracked."""
        token = await self._admission.acquire(AdmissionKind.EXTERNAL_CALL)
        with token:
            t0 = time.monotonic()
            status = "success"
            error_kind: str | None = None
            try:
                outcome = await factory()
            except asyncio.CancelledError:
                status = "cancelled"
                raise
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Gateway %s.%s raised unexpectedly", gateway, operation, exc_info=exc
                )
                outcome = Failure(ErrorKind.FATAL, f"{type(exc).__name__}: {exc}")
            finally:
                latency_ms = int((time.monotonic() - t0) * 1000)
                if status == "cancelled":
                    self._record(execution, gateway, operation, status, None, attempt, latency_ms)

        if isinstance(outcome, Failure):
            status = "retry" if outcome.retryable else "failed"
            error_kind = outcome.kind.value
        self._record(execution, gateway, operation, status, error_kind, attempt, latency_ms)
        return outcome

    def _record(
        self,
        execution: PipelineExecution,
        gateway: str,
        operation: str,
        status: str,
        error_kind: str | None,
        attempt: int,
        latency_ms: int,
    ) -> None:
        if self._call_logger is None:
            return
        self._call_logger.record(
            gateway,
            operation,
            status,
            fingerprint=execution.fingerprint.key,
            execution_id=execution.execution_id,
            error_kind=error_kind,
            attempt=attempt,
            latency_ms=latency_ms,
        )

    def _track(self, coro: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
