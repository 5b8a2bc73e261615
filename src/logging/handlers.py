# src/logging/handlers.py — v2
"""Size-based rotating file handler for log files."""

from __future__ import annotations

import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


def parse_size(size: str | int) -> int:
    """Parse '10MB', '512 KB', '2048B' or a plain byte count into bytes."""
    if isinstance(size, int):
        if size <= 0:
            raise ValueError("size must be positive")
        return size
    match = re.fullmatch(r"\s*(\d+)\s*(B|KB|MB|GB)?\s*", size, re.IGNORECASE)
    if not match:
        raise ValueError(f"Invalid size format: {size!r}. Use e.g. '10MB'.")
    value = int(match.group(1))
    unit = (match.group(2) or "B").upper()
    if value <= 0:
        raise ValueError("size must be positive")
    return value * _UNITS[unit]


def create_rotating_handler(
    log_file: str | Path,
    rotation: str | int = "10MB",
    retention: int = 30,
) -> RotatingFileHandler:
    """Create a rotating handler, creating the parent directory if needed.

    Args:
        log_file: Path to log file ('~' is expanded).
        rotation: Max file size before rotation.
        retention: Number of rotated files to keep.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
