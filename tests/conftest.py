# tests/conftest.py — v2
"""Shared test fixtures for the unit tests.

Provides scripted fake gateways with call counters, small-deadline
settings, a fake monotonic clock and canned generation payloads.
No network access: every external collaborator is faked.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from vidbrief.config.settings import Settings
from vidbrief.core.errors import ErrorKind
from vidbrief.core.models import RequestKind, VideoMetadata
from vidbrief.core.outcomes import Failure, Ok
from vidbrief.gateways.base import (
    BaseGenerationGateway,
    BaseMediaGateway,
    BaseMetadataGateway,
    Gateways,
)
from vidbrief.gateways.models import GenerationRequest, MediaHandle, ProcessingStatus
from vidbrief.tracking.call_logger import CallLogger


# === Payload builders ===


def make_quiz_json(questions: int = 5, options: int = 4, correct_index: Any = 1) -> str:
    """Raw generation text for a quiz with the given shape."""
    return json.dumps({
        "questions": [
            {
                "question": f"Question {i + 1}?",
                "options": [f"Option {chr(65 + j)}" for j in range(options)],
                "correct_index": correct_index,
                "explanation": f"Because of point {i + 1}.",
            }
            for i in range(questions)
        ]
    })


def make_summary_json(summary: str = "The video explains caching.", key_points=None) -> str:
    return json.dumps({
        "summary": summary,
        "key_points": key_points if key_points is not None else ["LRU", "TTL"],
    })


# === Fake clock ===


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# === Fake gateways ===


class _Scripted:
    """Returns scripted outcomes in order, then a default.

    A scripted item may be an outcome or an exception instance, which is
    raised instead of returned.
    """

    def __init__(self, script: list[Any] | None = None, delay: float = 0.0) -> None:
        self.script = list(script or [])
        self.delay = delay
        self.calls = 0

    async def _next(self, default: Any) -> Any:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.script.pop(0) if self.script else default
        if isinstance(item, BaseException):
            raise item
        return item


class FakeMetadataGateway(BaseMetadataGateway):
    def __init__(self, script: list[Any] | None = None, delay: float = 0.0) -> None:
        self._fetch = _Scripted(script, delay)

    @property
    def calls(self) -> int:
        return self._fetch.calls

    async def fetch(self, video_id: str):
        return await self._fetch._next(
            Ok(VideoMetadata(
                video_id=video_id,
                title="Caching in practice",
                channel_name="Systems Channel",
                duration_iso8601="PT4M13S",
            ))
        )


class FakeMediaGateway(BaseMediaGateway):
    def __init__(
        self,
        upload_script: list[Any] | None = None,
        poll_script: list[Any] | None = None,
        delete_script: list[Any] | None = None,
        upload_delay: float = 0.0,
        poll_delay: float = 0.0,
    ) -> None:
        self._upload = _Scripted(upload_script, upload_delay)
        self._poll = _Scripted(poll_script, poll_delay)
        self._delete = _Scripted(delete_script)
        self.deleted: list[MediaHandle] = []

    @property
    def upload_calls(self) -> int:
        return self._upload.calls

    @property
    def poll_calls(self) -> int:
        return self._poll.calls

    @property
    def delete_calls(self) -> int:
        return self._delete.calls

    async def upload(self, video_id: str):
        return await self._upload._next(
            Ok(MediaHandle(name=f"files/{video_id}", uri=f"https://media.test/{video_id}"))
        )

    async def poll_status(self, handle: MediaHandle):
        return await self._poll._next(Ok(ProcessingStatus.ACTIVE))

    async def delete(self, handle: MediaHandle):
        outcome = await self._delete._next(Ok(None))
        self.deleted.append(handle)
        return outcome


class FakeGenerationGateway(BaseGenerationGateway):
    def __init__(self, script: list[Any] | None = None, delay: float = 0.0) -> None:
        self._generate = _Scripted(script, delay)
        self.requests: list[GenerationRequest] = []

    @property
    def calls(self) -> int:
        return self._generate.calls

    @property
    def provider_name(self) -> str:
        return "fake"

    async def generate(self, request: GenerationRequest):
        self.requests.append(request)
        default = make_quiz_json() if request.kind is RequestKind.QUIZ else make_summary_json()
        return await self._generate._next(Ok(default))


class FakeGateways:
    """The three fakes plus the Gateways bundle handed to the pipeline."""

    def __init__(
        self,
        metadata: FakeMetadataGateway | None = None,
        media: FakeMediaGateway | None = None,
        generation: FakeGenerationGateway | None = None,
    ) -> None:
        self.metadata = metadata or FakeMetadataGateway()
        self.media = media or FakeMediaGateway()
        self.generation = generation or FakeGenerationGateway()

    @property
    def bundle(self) -> Gateways:
        return Gateways(metadata=self.metadata, media=self.media, generation=self.generation)


# === FIXTURES ===


@pytest.fixture
def settings() -> Settings:
    """Settings with sub-second deadlines and zero retry delays."""
    return Settings(
        _env_file=None,
        supported_languages="en,fr,de,pt-br",
        pipeline_deadline_s=2.0,
        metadata_timeout_s=0.5,
        upload_timeout_base_s=0.5,
        upload_timeout_per_minute_s=0.0,
        upload_timeout_cap_s=1.0,
        poll_deadline_s=1.0,
        poll_initial_delay_s=0.01,
        poll_backoff_factor=2.0,
        poll_max_delay_s=0.04,
        generation_timeout_s=0.5,
        cleanup_timeout_s=0.5,
        cleanup_max_retries=1,
        stage_max_retries=2,
        stage_retry_base_delay_s=0.0,
        malformed_result_retries=1,
        max_concurrent_pipelines=8,
        max_concurrent_external_calls=16,
        rate_limit_per_caller=10,
        rate_limit_window_s=60.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def call_logger() -> CallLogger:
    return CallLogger()


@pytest.fixture
def fakes() -> FakeGateways:
    """Default fakes: every call succeeds immediately."""
    return FakeGateways()


@pytest.fixture
def fake_types():
    """Fake gateway classes, for tests that script their own outcomes."""
    return {
        "metadata": FakeMetadataGateway,
        "media": FakeMediaGateway,
        "generation": FakeGenerationGateway,
        "bundle": FakeGateways,
        "clock": FakeClock,
    }


@pytest.fixture
def quiz_json():
    return make_quiz_json


@pytest.fixture
def summary_json():
    return make_summary_json


@pytest.fixture
def transient():
    return Failure(ErrorKind.TRANSIENT, "upstream hiccup")
