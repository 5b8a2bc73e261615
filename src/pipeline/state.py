# src/pipeline/state.py — v2
"""Pipeline execution record and its state machine.

One PipelineExecution exists per in-flight fingerprint. It is owned by the
coordinator, advanced only by the runner, and dropped from the registry
as soon as it reaches a terminal state.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from vidbrief.core.models import Fingerprint

if TYPE_CHECKING:
    from vidbrief.core.errors import VidbriefError
    from vidbrief.core.models import Artifact
    from vidbrief.gateways.models import MediaHandle, VideoMetadata


class PipelineStage(str, Enum):
    """Execution states, in pipeline order."""

    PENDING = "pending"
    METADATA_FETCHING = "metadata_fetching"
    MEDIA_UPLOADING = "media_uploading"
    MEDIA_PROCESSING = "media_processing"
    GENERATING = "generating"
    CLEANING_UP = "cleaning_up"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({PipelineStage.SUCCEEDED, PipelineStage.FAILED, PipelineStage.CANCELLED})

# Forward edges only; FAILED and CANCELLED are reachable from any non-terminal state.
_FORWARD: dict[PipelineStage, PipelineStage] = {
    PipelineStage.PENDING: PipelineStage.METADATA_FETCHING,
    PipelineStage.METADATA_FETCHING: PipelineStage.MEDIA_UPLOADING,
    PipelineStage.MEDIA_UPLOADING: PipelineStage.MEDIA_PROCESSING,
    PipelineStage.MEDIA_PROCESSING: PipelineStage.GENERATING,
    PipelineStage.GENERATING: PipelineStage.CLEANING_UP,
    PipelineStage.CLEANING_UP: PipelineStage.SUCCEEDED,
}


class IllegalTransitionError(RuntimeError):
    """Raised when the runner tries to take an edge the machine lacks."""


def can_transition(current: PipelineStage, target: PipelineStage) -> bool:
    if current.terminal:
        return False
    if target in (PipelineStage.FAILED, PipelineStage.CANCELLED):
        return True
    return _FORWARD.get(current) is target


@dataclass
class Waiter:
    """One caller joined to an execution."""

    caller_id: str
    future: asyncio.Future
    fingerprint: Fingerprint
    waiter_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def __await__(self):
        return self.future.__await__()


@dataclass
class PipelineExecution:
    """Mutable record of one single-flight execution."""

    fingerprint: Fingerprint
    execution_id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    state: PipelineStage = PipelineStage.PENDING
    started_at: float = field(default_factory=time.monotonic)
    waiters: dict[str, Waiter] = field(default_factory=dict)
    cancelled: bool = False
    cancel_committed: bool = False
    history: list[tuple[PipelineStage, float]] = field(default_factory=list)

    metadata: VideoMetadata | None = None
    handle: MediaHandle | None = None
    cleanup_attempted: bool = False
    result: Artifact | None = None
    error: VidbriefError | None = None

    def __post_init__(self) -> None:
        self.history.append((self.state, self.started_at))

    @property
    def terminal(self) -> bool:
        return self.state.terminal

    @property
    def stages(self) -> list[PipelineStage]:
        """States visited so far, in order."""
        return [stage for stage, _ in self.history]

    def reached(self, stage: PipelineStage) -> bool:
        return stage in self.stages

    def transition(self, target: PipelineStage) -> None:
        if not can_transition(self.state, target):
            raise IllegalTransitionError(
                f"{self.execution_id}: {self.state.value} -> {target.value} not allowed"
            )
        self.state = target
        self.history.append((target, time.monotonic()))

    def elapsed_s(self) -> float:
        return time.monotonic() - self.started_at
