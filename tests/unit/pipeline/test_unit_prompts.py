# tests/unit/pipeline/test_unit_prompts.py — v1
"""Tests for pipeline/prompts.py."""

from __future__ import annotations

from vidbrief.core.models import RequestKind, VideoMetadata
from vidbrief.pipeline.prompts import (
    QUIZ_RESPONSE_SCHEMA,
    SUMMARY_RESPONSE_SCHEMA,
    build_prompt,
    response_schema,
)

META = VideoMetadata(video_id="vid", title="Caching in practice", channel_name="Systems")


class TestBuildPrompt:
    def test_quiz_prompt(self):
        prompt = build_prompt(RequestKind.QUIZ, "fr", META)
        assert "Caching in practice" in prompt
        assert "French" in prompt
        assert "exactly 5" in prompt
        assert '"correct_index"' in prompt

    def test_summary_prompt(self):
        prompt = build_prompt(RequestKind.SUMMARY, "en", META)
        assert "English" in prompt
        assert "Systems" in prompt

    def test_without_metadata(self):
        assert "untitled" in build_prompt(RequestKind.SUMMARY, "en", None)


class TestResponseSchema:
    def test_by_kind(self):
        assert response_schema(RequestKind.QUIZ) is QUIZ_RESPONSE_SCHEMA
        assert response_schema(RequestKind.SUMMARY) is SUMMARY_RESPONSE_SCHEMA
