# src/pipeline/validation.py — v1
"""Parse raw generation output into artifacts and enforce their structure.

Any result that cannot be turned into a structurally valid artifact is a
MalformedResultError; nothing invalid is ever cached or delivered.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from vidbrief.core.errors import MalformedResultError
from vidbrief.core.models import (
    QUIZ_OPTION_COUNT,
    QUIZ_QUESTION_COUNT,
    Artifact,
    Fingerprint,
    QuizArtifact,
    QuizQuestion,
    RequestKind,
    SummaryArtifact,
    VideoMetadata,
)

logger = logging.getLogger(__name__)


def parse_artifact(
    raw: str,
    fingerprint: Fingerprint,
    metadata: VideoMetadata | None = None,
) -> Artifact:
    """Build the artifact for fingerprint.kind from raw generation text.

    Raises:
        MalformedResultError: Unparseable JSON or structural violation.
    """
    data = _load_json(raw)
    if fingerprint.kind is RequestKind.QUIZ:
        return parse_quiz(data, fingerprint, metadata)
    return parse_summary(data, fingerprint, metadata)


def parse_quiz(
    data: Any, fingerprint: Fingerprint, metadata: VideoMetadata | None = None
) -> QuizArtifact:
    """Validate quiz JSON: 5 questions, 4 options each, index in [0, 3]."""
    if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
        raise MalformedResultError("quiz response has no 'questions' list")

    raw_questions: list[Any] = data["questions"]
    if len(raw_questions) != QUIZ_QUESTION_COUNT:
        raise MalformedResultError(
            f"expected {QUIZ_QUESTION_COUNT} questions, got {len(raw_questions)}"
        )

    questions: list[QuizQuestion] = []
    for ordinal, item in enumerate(raw_questions, start=1):
        if not isinstance(item, dict):
            raise MalformedResultError(f"question {ordinal} is not an object")
        options = item.get("options")
        if not isinstance(options, list) or len(options) != QUIZ_OPTION_COUNT:
            count = len(options) if isinstance(options, list) else 0
            raise MalformedResultError(
                f"question {ordinal}: expected {QUIZ_OPTION_COUNT} options, got {count}"
            )
        correct = item.get("correct_index")
        if isinstance(correct, bool) or not isinstance(correct, int):
            raise MalformedResultError(f"question {ordinal}: correct_index is not an integer")
        try:
            questions.append(
                QuizQuestion(
                    ordinal=ordinal,
                    question_text=str(item.get("question", "")).strip(),
                    answer_options=tuple(str(o).strip() for o in options),
                    correct_option_index=correct,
                    explanation_text=str(item.get("explanation", "")).strip(),
                )
            )
        except ValidationError as exc:
            raise MalformedResultError(f"question {ordinal}: {_first_error(exc)}") from exc

    try:
        return QuizArtifact(
            video_id=fingerprint.video_id,
            language=fingerprint.language,
            questions=tuple(questions),
            video=metadata,
        )
    except ValidationError as exc:
        raise MalformedResultError(f"quiz: {_first_error(exc)}") from exc


def parse_summary(
    data: Any, fingerprint: Fingerprint, metadata: VideoMetadata | None = None
) -> SummaryArtifact:
    """Validate summary JSON: non-blank 'summary', optional 'key_points'."""
    if not isinstance(data, dict) or not isinstance(data.get("summary"), str):
        raise MalformedResultError("summary response has no 'summary' string")
    key_points = data.get("key_points") or []
    if not isinstance(key_points, list):
        raise MalformedResultError("'key_points' must be a list")
    try:
        return SummaryArtifact(
            video_id=fingerprint.video_id,
            language=fingerprint.language,
            summary_text=data["summary"],
            key_points=tuple(str(p).strip() for p in key_points if str(p).strip()),
            video=metadata,
        )
    except ValidationError as exc:
        raise MalformedResultError(f"summary: {_first_error(exc)}") from exc


def _load_json(raw: str) -> Any:
    """Parse JSON, tolerating markdown fences around the payload."""
    text = (raw or "").strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [ln for ln in lines if not ln.strip().startswith("```")]
        text = "\n".join(lines)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.debug("Unparseable generation output (%d chars): %s", len(text), exc)
        raise MalformedResultError(f"response is not valid JSON: {exc.msg}") from exc


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err.get('msg', 'invalid')}" if loc else err.get("msg", "invalid")
