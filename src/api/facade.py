# src/api/facade.py — v3
"""Public API facade: single entry point for summary and quiz requests.

Usage:
    async with VideoBriefService(settings, gateways) as service:
        summary = await service.request("dQw4w9WgXcQ", "en", "summary")

request() validates and fingerprints the input, applies the per-caller
rate ceiling, replays a cached artifact when one is live, and otherwise
joins or starts the single-flight execution for the fingerprint.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from vidbrief.admission.controller import AdmissionController, AdmissionKind
from vidbrief.api.models import ArtifactRequest, ServiceStats
from vidbrief.cache.cache_factory import create_result_cache
from vidbrief.cache.fingerprint import build_fingerprint
from vidbrief.cache.memory_store import LRUResultCache
from vidbrief.config.settings import Settings
from vidbrief.core.errors import RateLimitedError
from vidbrief.core.models import Artifact, Fingerprint, RequestKind
from vidbrief.gateways.base import Gateways
from vidbrief.logging.context import set_caller_context
from vidbrief.pipeline.coordinator import PipelineCoordinator
from vidbrief.pipeline.retry import Sleep
from vidbrief.pipeline.runner import PipelineRunner
from vidbrief.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)


class VideoBriefService:
    """Fingerprint → cache → single-flight pipeline, behind one call.

    Args:
        settings: Global settings. Loaded from .env if None.
        gateways: External collaborators. Built from settings if None.
        cache: Result cache instance. Built from settings if None.
        admission: Admission controller. Built from settings if None.
        call_logger: Gateway call tracking. A fresh one bounded by
            settings.call_log_max_records if None.
        clock: Monotonic seconds source shared by cache and admission.
        sleep: Suspension used for retry backoff and poll intervals.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        gateways: Gateways | None = None,
        cache: LRUResultCache | None = None,
        admission: AdmissionController | None = None,
        call_logger: CallLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings or Settings()
        if gateways is None:
            from vidbrief.gateways.gateway_factory import create_gateways

            gateways = create_gateways(self.settings)
        self.cache = cache if cache is not None else create_result_cache(self.settings, clock=clock)
        self.admission = admission or AdmissionController.from_settings(self.settings, clock=clock)
        self.call_logger = (
            call_logger
            if call_logger is not None
            else CallLogger(max_records=self.settings.call_log_max_records)
        )
        self._supported_languages = frozenset(self.settings.supported_languages_list)

        self.runner = PipelineRunner(
            gateways=gateways,
            settings=self.settings,
            admission=self.admission,
            call_logger=self.call_logger,
            sleep=sleep,
        )
        self.coordinator = PipelineCoordinator(
            runner=self.runner,
            cache=self.cache,
            admission=self.admission,
            cache_ttl_s=self.settings.cache_ttl_s,
        )

    # --- Lifecycle ---

    async def start(self) -> None:
        """Start the periodic cache sweeper."""
        self.cache.start_sweeper(self.settings.cache_sweep_interval_s)

    async def aclose(self) -> None:
        """Stop the sweeper, cancel running executions, finish cleanups."""
        await self.cache.stop_sweeper()
        await self.coordinator.aclose()

    async def __aenter__(self) -> VideoBriefService:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- Requests ---

    def fingerprint(self, video_id: str, language: str, kind: RequestKind | str) -> Fingerprint:
        """Validate inputs and build the fingerprint (raises InvalidInputError)."""
        return build_fingerprint(video_id, language, kind, self._supported_languages)

    async def request(
        self,
        video_id: str,
        language: str,
        kind: RequestKind | str,
        caller_id: str = "anonymous",
    ) -> Artifact:
        """Return the artifact for (video_id, language, kind).

        Raises:
            InvalidInputError: Bad video id, language or kind; no external call made.
            RateLimitedError: Caller over its window, or no pipeline slot free.
            VidbriefError: The classified failure of the shared execution.
        """
        fp = self.fingerprint(video_id, language, kind)
        caller_id = (caller_id or "").strip() or "anonymous"
        set_caller_context(caller_id)

        denied = self.admission.admit_submission(caller_id)
        if denied is not None:
            raise RateLimitedError(denied.reason, fingerprint=fp.key)

        cached = await self.cache.get(fp)
        if cached is not None:
            logger.info("Cache hit for %s (%s/%s)", fp.short, fp.kind.value, fp.language)
            return cached

        try:
            waiter = self.coordinator.submit(fp, caller_id)
        except RateLimitedError:
            self.admission.refund_submission(caller_id)
            raise
        try:
            return await waiter
        except asyncio.CancelledError:
            self.coordinator.withdraw(waiter)
            raise

    async def submit(self, req: ArtifactRequest) -> Artifact:
        """request() for a pre-validated ArtifactRequest."""
        return await self.request(req.video_id, req.language, req.kind, req.caller_id)

    async def invalidate(self, video_id: str, language: str, kind: RequestKind | str) -> bool:
        """Drop a cached artifact reported stale by a downstream consumer."""
        return await self.cache.invalidate(self.fingerprint(video_id, language, kind))

    def stats(self) -> ServiceStats:
        return ServiceStats(
            cache=self.cache.stats(),
            active_executions=self.coordinator.active_count,
            executions_started=self.coordinator.executions_started,
            joins=self.coordinator.joins,
            outcomes=self.coordinator.outcome_counts(),
            pipelines_in_use=self.admission.in_use(AdmissionKind.PIPELINE),
            external_calls_in_use=self.admission.in_use(AdmissionKind.EXTERNAL_CALL),
            pending_cleanups=self.runner.pending_cleanups,
        )
