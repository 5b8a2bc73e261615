# src/logging/context.py — v2
"""Contextual logging support: attach fingerprint, execution, stage and caller.

Context variables are copied into every asyncio task at creation, so a
pipeline task set up with set_execution_context() tags all its log lines.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_fingerprint: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "fingerprint", default=None
)
_execution_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "execution_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)
_caller_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "caller_id", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    fingerprint: str | None = None
    execution_id: str | None = None
    stage: str | None = None
    caller_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        fingerprint=_fingerprint.get(),
        execution_id=_execution_id.get(),
        stage=_stage.get(),
        caller_id=_caller_id.get(),
    )


def set_execution_context(fingerprint: str, execution_id: str) -> None:
    """Set execution-level context (called once inside each pipeline task)."""
    _fingerprint.set(fingerprint)
    _execution_id.set(execution_id)


def set_stage_context(stage: str | None) -> None:
    """Set the current pipeline stage."""
    _stage.set(stage)


def set_caller_context(caller_id: str | None) -> None:
    """Set the requesting caller identity."""
    _caller_id.set(caller_id)


def clear_context() -> None:
    """Reset all context variables."""
    _fingerprint.set(None)
    _execution_id.set(None)
    _stage.set(None)
    _caller_id.set(None)
