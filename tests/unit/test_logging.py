# tests/unit/test_logging.py
"""Unit tests for stderr logging configuration."""

import json
import logging
import sys

from tool_exporter.logging_config import ConsoleFormatter, JsonFormatter, configure_logging


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("tool_exporter.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context():
    line = JsonFormatter().format(_record(job_id="abc123", tool_id="contact-form", step="extract"))

    data = json.loads(line)
    assert data["msg"] == "hello"
    assert data["level"] == "INFO"
    assert data["job_id"] == "abc123"
    assert data["tool_id"] == "contact-form"
    assert data["step"] == "extract"


def test_json_formatter_omits_missing_context():
    data = json.loads(JsonFormatter().format(_record()))

    assert "job_id" not in data
    assert "exc" not in data


def test_console_formatter_prefixes_job():
    line = ConsoleFormatter().format(_record(job_id="0123456789abcdef", step="verify"))

    assert line.startswith("[01234567/verify]")
    assert "hello" in line


def test_configure_logging_uses_stderr_only():
    configure_logging(level="DEBUG", json_format=False)

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.handlers[0].stream is sys.stderr
    assert root.level == logging.DEBUG
    assert isinstance(root.handlers[0].formatter, ConsoleFormatter)

    configure_logging()
    assert isinstance(logging.getLogger().handlers[0].formatter, JsonFormatter)
