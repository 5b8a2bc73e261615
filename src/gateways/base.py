# src/gateways/base.py — v1
"""Abstract gateway interfaces for the external media-understanding services.

Implementations must not raise for classified failures: every call
returns an Ok or Failure variant. Unexpected exceptions escaping an
implementation are treated as Fatal by the pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from vidbrief.core.outcomes import Outcome
from vidbrief.gateways.models import (
    GenerationRequest,
    MediaHandle,
    ProcessingStatus,
    VideoMetadata,
)


class BaseMetadataGateway(ABC):
    """Looks up descriptive metadata for a video."""

    @abstractmethod
    async def fetch(self, video_id: str) -> Outcome[VideoMetadata]:
        """Ok(VideoMetadata), Failure(NOT_FOUND) or Failure(TRANSIENT)."""


class BaseMediaGateway(ABC):
    """Uploads media, reports processing state, deletes uploads."""

    @abstractmethod
    async def upload(self, video_id: str) -> Outcome[MediaHandle]:
        """Submit the raw media for video_id, yielding a handle."""

    @abstractmethod
    async def poll_status(self, handle: MediaHandle) -> Outcome[ProcessingStatus]:
        """Report the handle's processing state."""

    @abstractmethod
    async def delete(self, handle: MediaHandle) -> Outcome[None]:
        """Remove uploaded media. Failures are logged by callers, never raised."""


class BaseGenerationGateway(ABC):
    """Produces the raw artifact text from processed media."""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> Outcome[str]:
        """Ok(raw text) or Failure(RATE_LIMITED | CONTENT_BLOCKED | TRANSIENT)."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier used in logs and call records."""


@dataclass(frozen=True)
class Gateways:
    """The three collaborators a pipeline needs, injected together."""

    metadata: BaseMetadataGateway
    media: BaseMediaGateway
    generation: BaseGenerationGateway
