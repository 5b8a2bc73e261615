# src/core/outcomes.py — v1
"""Tagged result variants returned by every gateway call.

Gateways never raise for classified failures: they return Ok(value) or
Failure(kind, detail) and call sites branch on the variant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from vidbrief.core.errors import ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful gateway outcome."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Classified gateway failure."""

    kind: ErrorKind
    detail: str = ""

    @property
    def ok(self) -> bool:
        return False

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


Outcome = Union[Ok[T], Failure]
