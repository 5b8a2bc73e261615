# src/api/models.py — v2
"""API-level models: ArtifactRequest, ServiceStats."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from vidbrief.cache.models import CacheStats
from vidbrief.core.models import RequestKind


class ArtifactRequest(BaseModel):
    """One consumer request for a summary or quiz."""

    video_id: str
    language: str = "en"
    kind: RequestKind = RequestKind.SUMMARY
    caller_id: str = "anonymous"

    @field_validator("caller_id")
    @classmethod
    def _caller_not_blank(cls, v: str) -> str:
        v = v.strip()
        return v or "anonymous"


class ServiceStats(BaseModel):
    """Snapshot of the service's working set."""

    cache: CacheStats
    active_executions: int
    executions_started: int
    joins: int
    outcomes: dict[str, int] = Field(default_factory=dict)
    pipelines_in_use: int = 0
    external_calls_in_use: int = 0
    pending_cleanups: int = 0
