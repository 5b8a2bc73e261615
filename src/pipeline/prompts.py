# src/pipeline/prompts.py — v1
"""Prompt templates and response schemas for each request kind."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from vidbrief.config.languages import language_name
from vidbrief.core.models import (
    QUIZ_OPTION_COUNT,
    QUIZ_QUESTION_COUNT,
    RequestKind,
    VideoMetadata,
)

_PROMPT_DIR = Path(__file__).parent / "prompts"

# Gemini accepts an OpenAPI subset: no $defs, no $ref.
SUMMARY_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "key_points": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["summary"],
}

QUIZ_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "questions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question": {"type": "string"},
                    "options": {"type": "array", "items": {"type": "string"}},
                    "correct_index": {"type": "integer"},
                    "explanation": {"type": "string"},
                },
                "required": ["question", "options", "correct_index"],
            },
        },
    },
    "required": ["questions"],
}


@lru_cache(maxsize=None)
def _load_template(kind: RequestKind) -> str:
    return (_PROMPT_DIR / f"{kind.value}.txt").read_text(encoding="utf-8")


def build_prompt(kind: RequestKind, language: str, metadata: VideoMetadata | None) -> str:
    """Fill the template for kind with language and video metadata."""
    template = _load_template(kind)
    return template.format(
        title=(metadata.title if metadata else "") or "untitled",
        channel=(metadata.channel_name if metadata else "") or "unknown",
        language_name=language_name(language),
        question_count=QUIZ_QUESTION_COUNT,
        option_count=QUIZ_OPTION_COUNT,
        max_index=QUIZ_OPTION_COUNT - 1,
    )


def response_schema(kind: RequestKind) -> dict[str, Any]:
    if kind is RequestKind.QUIZ:
        return QUIZ_RESPONSE_SCHEMA
    return SUMMARY_RESPONSE_SCHEMA
