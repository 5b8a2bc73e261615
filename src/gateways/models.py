# src/gateways/models.py — v1
"""Gateway-facing types: MediaHandle, ProcessingStatus, GenerationRequest."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from vidbrief.core.models import RequestKind, VideoMetadata

__all__ = ["GenerationRequest", "MediaHandle", "ProcessingStatus", "VideoMetadata"]


class ProcessingStatus(str, Enum):
    """Server-side processing state of an uploaded media handle."""

    PENDING = "pending"
    ACTIVE = "active"
    FAILED = "failed"


class MediaHandle(BaseModel):
    """Opaque reference to uploaded media owned by exactly one execution."""

    model_config = ConfigDict(frozen=True)

    name: str
    uri: str = ""
    mime_type: str = ""
    size_bytes: int | None = None


class GenerationRequest(BaseModel):
    """Everything the generation gateway needs for one call."""

    model_config = ConfigDict(frozen=True)

    handle: MediaHandle
    language: str
    kind: RequestKind
    prompt: str
    response_schema: dict | None = None
    structured_output: bool = True
