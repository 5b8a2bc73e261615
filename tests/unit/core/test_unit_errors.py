# tests/unit/core/test_unit_errors.py — v1
"""Tests for core/errors.py and core/outcomes.py."""

from __future__ import annotations

import asyncio

import pytest

from vidbrief.core.errors import (
    ContentBlockedError,
    ErrorKind,
    FatalError,
    InvalidInputError,
    MalformedResultError,
    NotFoundError,
    PipelineTimeoutError,
    RateLimitedError,
    TransientGatewayError,
    VidbriefError,
    classify_exception,
    error_for_kind,
    error_from_failure,
)
from vidbrief.core.outcomes import Failure, Ok


class TestErrorKind:
    def test_transient_value(self):
        assert ErrorKind.TRANSIENT.value == "transient_error"

    @pytest.mark.parametrize("kind", [ErrorKind.TRANSIENT, ErrorKind.RATE_LIMITED])
    def test_retryable(self, kind):
        assert kind.retryable is True

    @pytest.mark.parametrize("kind", [
        ErrorKind.INVALID_INPUT,
        ErrorKind.NOT_FOUND,
        ErrorKind.CONTENT_BLOCKED,
        ErrorKind.MALFORMED_RESULT,
        ErrorKind.TIMEOUT,
        ErrorKind.FATAL,
    ])
    def test_not_retryable(self, kind):
        assert kind.retryable is False


class TestVidbriefError:
    def test_default_message_is_kind(self):
        err = NotFoundError()
        assert err.message == "not_found"
        assert err.kind is ErrorKind.NOT_FOUND

    def test_invalid_input_is_value_error(self):
        assert isinstance(InvalidInputError("bad"), ValueError)

    def test_with_context_fills_missing_only(self):
        err = TransientGatewayError("x", stage="media_uploading")
        err.with_context(fingerprint="abc", stage="generating")
        assert err.fingerprint == "abc"
        assert err.stage == "media_uploading"

    def test_repr_names_kind(self):
        assert "content_blocked" in repr(ContentBlockedError("nope"))


class TestErrorMapping:
    @pytest.mark.parametrize("kind,cls", [
        (ErrorKind.INVALID_INPUT, InvalidInputError),
        (ErrorKind.RATE_LIMITED, RateLimitedError),
        (ErrorKind.NOT_FOUND, NotFoundError),
        (ErrorKind.CONTENT_BLOCKED, ContentBlockedError),
        (ErrorKind.MALFORMED_RESULT, MalformedResultError),
        (ErrorKind.TIMEOUT, PipelineTimeoutError),
        (ErrorKind.TRANSIENT, TransientGatewayError),
        (ErrorKind.FATAL, FatalError),
    ])
    def test_error_for_kind(self, kind, cls):
        err = error_for_kind(kind, "detail")
        assert type(err) is cls
        assert err.kind is kind

    def test_error_from_failure(self):
        err = error_from_failure(
            Failure(ErrorKind.CONTENT_BLOCKED, "safety"), fingerprint="fp", stage="generating"
        )
        assert isinstance(err, ContentBlockedError)
        assert err.message == "safety"
        assert err.fingerprint == "fp"
        assert err.stage == "generating"


class TestClassifyException:
    def test_passthrough(self):
        original = NotFoundError("gone")
        assert classify_exception(original, fingerprint="fp") is original
        assert original.fingerprint == "fp"

    def test_timeout(self):
        err = classify_exception(asyncio.TimeoutError())
        assert isinstance(err, PipelineTimeoutError)

    def test_unexpected_is_fatal(self):
        err = classify_exception(KeyError("boom"), stage="generating")
        assert isinstance(err, FatalError)
        assert "KeyError" in err.message
        assert err.stage == "generating"

    def test_all_subclass_base(self):
        assert isinstance(classify_exception(RuntimeError()), VidbriefError)


class TestOutcomes:
    def test_ok(self):
        outcome = Ok(42)
        assert outcome.ok is True
        assert outcome.value == 42

    def test_failure(self):
        outcome = Failure(ErrorKind.RATE_LIMITED, "429")
        assert outcome.ok is False
        assert outcome.retryable is True

    def test_failure_not_retryable(self):
        assert Failure(ErrorKind.NOT_FOUND).retryable is False
