# src/tracking/models.py — v2
"""Tracking domain models: GatewayCallRecord, GatewayCallStats."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class GatewayCallRecord(BaseModel):
    """Individual external gateway call log entry."""

    call_id: str
    timestamp: datetime
    gateway: Literal["metadata", "media", "generation"]
    operation: str
    fingerprint: str | None = None
    execution_id: str | None = None
    status: Literal["success", "retry", "failed", "cancelled"]
    error_kind: str | None = None
    attempt: int = 1
    latency_ms: int = 0


class GatewayCallStats(BaseModel):
    """Aggregated stats for one (gateway, operation) pair."""

    gateway: str
    operation: str
    total_calls: int
    failure_count: int = 0
    retry_count: int = 0
    avg_latency_ms: float = 0.0
    max_latency_ms: int = 0
