# src/tracking/call_logger.py — v3
"""Gateway call logging: records every external call an execution makes.

Keeps the most recent GatewayCallRecord entries for post-run analysis and
for asserting exactly-once call behaviour. Older records are dropped once
max_records is reached.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import defaultdict, deque
from datetime import datetime, timezone
from pathlib import Path

from vidbrief.tracking.models import GatewayCallRecord, GatewayCallStats

logger = logging.getLogger(__name__)


class CallLogger:
    """Thread-safe, size-bounded store of gateway call records.

    Args:
        max_records: Records retained, oldest dropped first. None keeps all.
    """

    def __init__(self, max_records: int | None = None) -> None:
        if max_records is not None and max_records < 1:
            raise ValueError("max_records must be >= 1")
        self._records: deque[GatewayCallRecord] = deque(maxlen=max_records)
        self._dropped = 0
        self._lock = threading.Lock()

    def record(
        self,
        gateway: str,
        operation: str,
        status: str = "success",
        *,
        fingerprint: str | None = None,
        execution_id: str | None = None,
        error_kind: str | None = None,
        attempt: int = 1,
        latency_ms: int = 0,
    ) -> GatewayCallRecord:
        """Record one gateway call.

        Args:
            gateway: "metadata", "media" or "generation".
            operation: Gateway method (fetch, upload, poll_status, delete, generate).
            status: success, retry, failed or cancelled.
            fingerprint: Fingerprint key of the owning execution.
            execution_id: Owning execution id.
            error_kind: ErrorKind value when the call failed.
            attempt: 1-based attempt number within the stage.
            latency_ms: Wall time spent in the call.
        """
        record = GatewayCallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            gateway=gateway,  # type: ignore[arg-type]
            operation=operation,
            fingerprint=fingerprint,
            execution_id=execution_id,
            status=status,  # type: ignore[arg-type]
            error_kind=error_kind,
            attempt=attempt,
            latency_ms=latency_ms,
        )
        with self._lock:
            if self._records.maxlen is not None and len(self._records) == self._records.maxlen:
                self._dropped += 1
            self._records.append(record)
        return record

    @property
    def records(self) -> list[GatewayCallRecord]:
        """Retained calls, oldest first."""
        with self._lock:
            return list(self._records)

    @property
    def total_calls(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def dropped(self) -> int:
        """Records evicted to stay within max_records."""
        with self._lock:
            return self._dropped

    def count(self, gateway: str, operation: str | None = None) -> int:
        """Number of calls to a gateway, optionally a single operation."""
        return sum(
            1
            for r in self.records
            if r.gateway == gateway and (operation is None or r.operation == operation)
        )

    def summary(self) -> dict[str, GatewayCallStats]:
        """Aggregate records by 'gateway.operation'."""
        grouped: dict[str, list[GatewayCallRecord]] = defaultdict(list)
        for rec in self.records:
            grouped[f"{rec.gateway}.{rec.operation}"].append(rec)

        result: dict[str, GatewayCallStats] = {}
        for key, recs in grouped.items():
            latencies = [r.latency_ms for r in recs]
            result[key] = GatewayCallStats(
                gateway=recs[0].gateway,
                operation=recs[0].operation,
                total_calls=len(recs),
                failure_count=sum(1 for r in recs if r.status == "failed"),
                retry_count=sum(1 for r in recs if r.status == "retry"),
                avg_latency_ms=sum(latencies) / len(latencies),
                max_latency_ms=max(latencies),
            )
        return result

    def save(self, path: Path) -> None:
        """Save all records to a JSON Lines file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            for record in self.records:
                f.write(json.dumps(record.model_dump(), default=str) + "\n")
        logger.info("Saved %d gateway call records to %s", self.total_calls, path)
