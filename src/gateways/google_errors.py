# src/gateways/google_errors.py — v1
"""Classify google-generativeai / google-api-core exceptions.

Matching is by exception class name and message so the SDK does not have
to be importable just to classify.
"""

from __future__ import annotations

from vidbrief.core.errors import ErrorKind

_RATE_LIMIT_NAMES = ("resourceexhausted", "toomanyrequests")
_BLOCKED_NAMES = ("blockedpromptexception", "stopcandidateexception")
_NOT_FOUND_NAMES = ("notfound",)
_TRANSIENT_NAMES = (
    "serviceunavailable",
    "internalservererror",
    "deadlineexceeded",
    "gatewaytimeout",
    "aborted",
    "connectionerror",
    "timeout",
)


def classify_google_error(error: BaseException) -> ErrorKind:
    """Map an SDK exception to an ErrorKind."""
    name = type(error).__name__.lower()
    msg = str(error).lower()

    if any(n in name for n in _BLOCKED_NAMES) or "safety" in msg or "blocked" in msg:
        return ErrorKind.CONTENT_BLOCKED
    if any(n in name for n in _RATE_LIMIT_NAMES) or "429" in msg or "quota" in msg:
        return ErrorKind.RATE_LIMITED
    if any(n in name for n in _NOT_FOUND_NAMES) or "404" in msg:
        return ErrorKind.NOT_FOUND
    if any(n in name for n in _TRANSIENT_NAMES):
        return ErrorKind.TRANSIENT
    if any(code in msg for code in ("500", "502", "503", "504")):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL
