# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

QUIZ_QUESTION_COUNT = 5
QUIZ_OPTION_COUNT = 4

_ISO_DURATION = re.compile(
    r"P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?"
)


class RequestKind(str, Enum):
    """Which artifact the caller wants."""

    SUMMARY = "summary"
    QUIZ = "quiz"


# === FINGERPRINT ===


class Fingerprint(BaseModel):
    """Deterministic dedup/cache key for one logical request.

    Equality and hashing follow all fields, so two fingerprints built from
    the same normalized inputs are interchangeable as dict keys.
    """

    model_config = ConfigDict(frozen=True)

    video_id: str
    language: str
    kind: RequestKind
    key: str

    def __str__(self) -> str:
        return self.key

    @property
    def short(self) -> str:
        """Abbreviated key for log lines."""
        return self.key[:12]


# === VIDEO METADATA ===


class VideoMetadata(BaseModel):
    """Descriptive metadata returned by the metadata gateway."""

    video_id: str
    title: str
    channel_name: str = ""
    duration_iso8601: str = ""
    thumbnail_url: str = ""

    @property
    def duration_seconds(self) -> float | None:
        """Duration parsed from ISO-8601 (e.g. "PT1H2M3S"); None if absent or unparseable."""
        match = _ISO_DURATION.fullmatch(self.duration_iso8601.strip())
        if not match or not any(match.groups()):
            return None
        days, hours, minutes, seconds = (float(g) if g else 0.0 for g in match.groups())
        return days * 86400 + hours * 3600 + minutes * 60 + seconds


# === ARTIFACTS ===


class QuizQuestion(BaseModel):
    """One multiple-choice question with exactly four options."""

    model_config = ConfigDict(frozen=True)

    ordinal: int = Field(ge=1)
    question_text: str = Field(min_length=1)
    answer_options: tuple[str, ...] = Field(
        min_length=QUIZ_OPTION_COUNT, max_length=QUIZ_OPTION_COUNT
    )
    correct_option_index: int = Field(ge=0, le=QUIZ_OPTION_COUNT - 1)
    explanation_text: str = ""

    @field_validator("answer_options")
    @classmethod
    def _options_not_blank(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if any(not opt.strip() for opt in v):
            raise ValueError("answer options must be non-empty")
        return v


class QuizArtifact(BaseModel):
    """Generated quiz: exactly five ordered questions."""

    model_config = ConfigDict(frozen=True)

    kind: RequestKind = RequestKind.QUIZ
    video_id: str
    language: str
    questions: tuple[QuizQuestion, ...] = Field(
        min_length=QUIZ_QUESTION_COUNT, max_length=QUIZ_QUESTION_COUNT
    )
    video: VideoMetadata | None = None

    @model_validator(mode="after")
    def _ordinals_sequential(self) -> QuizArtifact:
        ordinals = [q.ordinal for q in self.questions]
        if ordinals != list(range(1, len(self.questions) + 1)):
            raise ValueError(f"question ordinals must be 1..N in order, got {ordinals}")
        return self


class SummaryArtifact(BaseModel):
    """Generated summary text with optional key points."""

    model_config = ConfigDict(frozen=True)

    kind: RequestKind = RequestKind.SUMMARY
    video_id: str
    language: str
    summary_text: str = Field(min_length=1)
    key_points: tuple[str, ...] = ()
    video: VideoMetadata | None = None

    @field_validator("summary_text")
    @classmethod
    def _summary_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("summary text must not be blank")
        return v.strip()


Artifact = Union[SummaryArtifact, QuizArtifact]
