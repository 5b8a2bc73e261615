# src/core/errors.py — v1
"""Classified error taxonomy surfaced by the orchestration core.

Every failure that leaves the core is exactly one VidbriefError subclass.
Callers map ErrorKind values to user-facing messages; the core never does.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vidbrief.core.outcomes import Failure


class ErrorKind(str, Enum):
    """Classification attached to every failure."""

    INVALID_INPUT = "invalid_input"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    CONTENT_BLOCKED = "content_blocked"
    MALFORMED_RESULT = "malformed_result"
    TIMEOUT = "timeout"
    TRANSIENT = "transient_error"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        """Whether a stage may retry locally on this kind."""
        return self in (ErrorKind.TRANSIENT, ErrorKind.RATE_LIMITED)


class VidbriefError(Exception):
    """Base class for all classified errors.

    Args:
        message: Human-readable detail (for logs, never shown verbatim).
        fingerprint: Fingerprint key of the affected request, if known.
        stage: Pipeline stage where the failure was observed, if any.
    """

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        message: str = "",
        *,
        fingerprint: str | None = None,
        stage: str | None = None,
    ) -> None:
        self.message = message or self.kind.value
        self.fingerprint = fingerprint
        self.stage = stage
        super().__init__(self.message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"message={self.message!r}, stage={self.stage!r})"
        )

    def with_context(
        self, fingerprint: str | None = None, stage: str | None = None
    ) -> VidbriefError:
        """Fill missing fingerprint/stage without overwriting known values."""
        if self.fingerprint is None:
            self.fingerprint = fingerprint
        if self.stage is None:
            self.stage = stage
        return self


class InvalidInputError(VidbriefError, ValueError):
    kind = ErrorKind.INVALID_INPUT


class RateLimitedError(VidbriefError):
    kind = ErrorKind.RATE_LIMITED


class NotFoundError(VidbriefError):
    kind = ErrorKind.NOT_FOUND


class ContentBlockedError(VidbriefError):
    kind = ErrorKind.CONTENT_BLOCKED


class MalformedResultError(VidbriefError):
    kind = ErrorKind.MALFORMED_RESULT


class PipelineTimeoutError(VidbriefError):
    kind = ErrorKind.TIMEOUT


class TransientGatewayError(VidbriefError):
    kind = ErrorKind.TRANSIENT


class FatalError(VidbriefError):
    kind = ErrorKind.FATAL


_ERROR_CLASSES: dict[ErrorKind, type[VidbriefError]] = {
    ErrorKind.INVALID_INPUT: InvalidInputError,
    ErrorKind.RATE_LIMITED: RateLimitedError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.CONTENT_BLOCKED: ContentBlockedError,
    ErrorKind.MALFORMED_RESULT: MalformedResultError,
    ErrorKind.TIMEOUT: PipelineTimeoutError,
    ErrorKind.TRANSIENT: TransientGatewayError,
    ErrorKind.FATAL: FatalError,
}


def error_for_kind(
    kind: ErrorKind,
    message: str = "",
    *,
    fingerprint: str | None = None,
    stage: str | None = None,
) -> VidbriefError:
    """Instantiate the exception class registered for an ErrorKind."""
    return _ERROR_CLASSES[kind](message, fingerprint=fingerprint, stage=stage)


def error_from_failure(
    failure: Failure,
    *,
    fingerprint: str | None = None,
    stage: str | None = None,
) -> VidbriefError:
    """Convert a tagged gateway Failure into its exception."""
    return error_for_kind(
        failure.kind, failure.detail, fingerprint=fingerprint, stage=stage
    )


def classify_exception(
    exc: BaseException,
    *,
    fingerprint: str | None = None,
    stage: str | None = None,
) -> VidbriefError:
    """Map any exception to a classified VidbriefError.

    Already-classified errors pass through (with context filled in),
    timeouts become PipelineTimeoutError, anything else is Fatal.
    """
    if isinstance(exc, VidbriefError):
        return exc.with_context(fingerprint=fingerprint, stage=stage)
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return PipelineTimeoutError(
            f"deadline exceeded: {exc}" if str(exc) else "deadline exceeded",
            fingerprint=fingerprint,
            stage=stage,
        )
    return FatalError(
        f"{type(exc).__name__}: {exc}", fingerprint=fingerprint, stage=stage
    )
