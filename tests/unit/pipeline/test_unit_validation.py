# tests/unit/pipeline/test_unit_validation.py — v1
"""Tests for pipeline/validation.py: raw output to artifacts."""

from __future__ import annotations

import json

import pytest

from vidbrief.cache.fingerprint import build_fingerprint
from vidbrief.core.errors import MalformedResultError
from vidbrief.core.models import QuizArtifact, SummaryArtifact, VideoMetadata
from vidbrief.pipeline.validation import parse_artifact

QUIZ_FP = build_fingerprint("vid", "en", "quiz", {"en"})
SUMMARY_FP = build_fingerprint("vid", "en", "summary", {"en"})


class TestParseQuiz:
    def test_valid(self, quiz_json):
        quiz = parse_artifact(quiz_json(), QUIZ_FP)
        assert isinstance(quiz, QuizArtifact)
        assert [q.ordinal for q in quiz.questions] == [1, 2, 3, 4, 5]
        assert quiz.questions[0].correct_option_index == 1
        assert quiz.video_id == "vid"

    def test_metadata_attached(self, quiz_json):
        meta = VideoMetadata(video_id="vid", title="T")
        assert parse_artifact(quiz_json(), QUIZ_FP, meta).video == meta

    @pytest.mark.parametrize("count", [4, 6])
    def test_wrong_question_count(self, quiz_json, count):
        with pytest.raises(MalformedResultError, match="questions"):
            parse_artifact(quiz_json(questions=count), QUIZ_FP)

    @pytest.mark.parametrize("count", [3, 5])
    def test_wrong_option_count(self, quiz_json, count):
        with pytest.raises(MalformedResultError, match="options"):
            parse_artifact(quiz_json(options=count), QUIZ_FP)

    @pytest.mark.parametrize("index", [4, -1])
    def test_index_out_of_range(self, quiz_json, index):
        with pytest.raises(MalformedResultError):
            parse_artifact(quiz_json(correct_index=index), QUIZ_FP)

    @pytest.mark.parametrize("index", ["1", True, 1.0, None])
    def test_index_not_integer(self, quiz_json, index):
        with pytest.raises(MalformedResultError, match="correct_index"):
            parse_artifact(quiz_json(correct_index=index), QUIZ_FP)

    def test_blank_question(self):
        raw = json.loads(_quiz())
        raw["questions"][2]["question"] = "  "
        with pytest.raises(MalformedResultError, match="question 3"):
            parse_artifact(json.dumps(raw), QUIZ_FP)

    def test_missing_questions_key(self):
        with pytest.raises(MalformedResultError):
            parse_artifact('{"items": []}', QUIZ_FP)


class TestParseSummary:
    def test_valid(self, summary_json):
        summary = parse_artifact(summary_json(), SUMMARY_FP)
        assert isinstance(summary, SummaryArtifact)
        assert summary.key_points == ("LRU", "TTL")

    def test_key_points_optional(self):
        summary = parse_artifact('{"summary": "short"}', SUMMARY_FP)
        assert summary.key_points == ()

    def test_blank_summary(self, summary_json):
        with pytest.raises(MalformedResultError):
            parse_artifact(summary_json(summary="   "), SUMMARY_FP)

    def test_key_points_not_list(self):
        with pytest.raises(MalformedResultError, match="key_points"):
            parse_artifact('{"summary": "s", "key_points": "one"}', SUMMARY_FP)


class TestLoadJson:
    def test_fenced_json(self, summary_json):
        raw = f"```json\n{summary_json()}\n```"
        assert parse_artifact(raw, SUMMARY_FP).summary_text == "The video explains caching."

    @pytest.mark.parametrize("raw", ["", "not json", "[1, 2"])
    def test_invalid_json(self, raw):
        with pytest.raises(MalformedResultError):
            parse_artifact(raw, SUMMARY_FP)

    def test_array_is_malformed(self):
        with pytest.raises(MalformedResultError):
            parse_artifact("[]", SUMMARY_FP)


def _quiz() -> str:
    return json.dumps({
        "questions": [
            {"question": f"Q{i}?", "options": ["a", "b", "c", "d"], "correct_index": 0}
            for i in range(5)
        ]
    })
