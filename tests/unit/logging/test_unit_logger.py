# tests/unit/logging/test_unit_logger.py — v3
"""Tests for logging/logger.py: formatters and settings-driven setup."""

from __future__ import annotations

import json
import logging
import sys

from vidbrief.config.settings import Settings
from vidbrief.logging.context import (
    clear_context,
    set_caller_context,
    set_execution_context,
    set_stage_context,
)
from vidbrief.logging.logger import JsonFormatter, TextFormatter, setup_logging


def _record(msg: str = "Hello", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="vidbrief.test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=exc_info,
    )


class TestJsonFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["msg"] == "Hello"
        assert parsed["logger"] == "vidbrief.test"
        assert "ts" in parsed
        assert "execution_id" not in parsed

    def test_context_fields_flat(self):
        set_execution_context("fp-key", "exec-1")
        set_stage_context("generating")
        set_caller_context("alice")
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["fingerprint"] == "fp-key"
        assert parsed["execution_id"] == "exec-1"
        assert parsed["stage"] == "generating"
        assert parsed["caller_id"] == "alice"

    def test_format_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record(exc_info=sys.exc_info())
        parsed = json.loads(JsonFormatter().format(record))
        assert "ValueError: bad" in parsed["exc"]


class TestTextFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_includes_execution_stage_and_caller(self):
        set_execution_context("fp-key", "exec-9-long-id")
        set_stage_context("media_uploading")
        set_caller_context("bob")
        line = TextFormatter().format(_record("uploading"))
        assert "[exec-9-l/media_uploading]" in line
        assert "<bob>" in line
        assert line.endswith("- uploading")

    def test_without_context(self):
        line = TextFormatter().format(_record("idle"))
        assert "[" not in line
        assert line.endswith("vidbrief.test - idle")


class TestSetupLogging:
    def teardown_method(self):
        logging.getLogger("vidbrief").handlers.clear()

    def test_console_only(self):
        root = setup_logging(Settings(_env_file=None, log_format="text"), verbose=True)
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_level_from_settings(self):
        root = setup_logging(Settings(_env_file=None, log_level="WARNING"))
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_reinit_does_not_duplicate(self):
        settings = Settings(_env_file=None)
        setup_logging(settings)
        setup_logging(settings)
        assert len(logging.getLogger("vidbrief").handlers) == 1

    def test_quiets_http_clients(self):
        setup_logging(Settings(_env_file=None))
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "vidbrief.log"
        setup_logging(
            Settings(_env_file=None, log_file=log_file, log_rotation="1MB", log_retention=2)
        )
        logging.getLogger("vidbrief.test").info("written to file")
        for handler in logging.getLogger("vidbrief").handlers:
            handler.flush()
        assert "written to file" in log_file.read_text()
        for handler in logging.getLogger("vidbrief").handlers:
            handler.close()
