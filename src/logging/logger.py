# src/logging/logger.py — v3
"""Log setup for the vidbrief namespace.

Every line carries the fingerprint, execution, stage and caller that were
current in the emitting task. JSON lines are flat so log shippers can index
the context fields directly.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from vidbrief.logging.context import get_context

if TYPE_CHECKING:
    from vidbrief.config.settings import Settings

# Third-party loggers that log every HTTP request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "google.auth", "urllib3")


class JsonFormatter(logging.Formatter):
    """One flat JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(get_context().as_dict())
        if record.exc_info and record.exc_info[1] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Console format: time, level, logger, [execution/stage] caller - message."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        when = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        parts = [when, f"{record.levelname:<7}", record.name]
        if ctx.execution_id:
            parts.append(f"[{ctx.execution_id[:8]}/{ctx.stage or '-'}]")
        if ctx.caller_id:
            parts.append(f"<{ctx.caller_id}>")
        line = f"{' '.join(parts)} - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(settings: Settings, verbose: bool = False) -> logging.Logger:
    """Configure the vidbrief logger from settings; safe to call repeatedly.

    Logs go to stderr (stdout carries CLI output) and, when LOG_FILE is
    set, to a size-rotated file.
    """
    root = logging.getLogger("vidbrief")
    root.setLevel(logging.DEBUG if verbose else getattr(logging, settings.log_level))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter = (
        JsonFormatter() if settings.log_format == "json" else TextFormatter()
    )
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if settings.log_file:
        from vidbrief.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(
            str(settings.log_file),
            rotation=settings.log_rotation,
            retention=settings.log_retention,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root
