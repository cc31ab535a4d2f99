# tool_exporter/logging_config.py
"""
Stderr-only logging configuration.

CRITICAL: MCP uses stdio transport, so ALL logging must go to stderr.
No print() statements, no stdout handlers.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# LogRecord attributes copied into JSON output when a logger adapter sets them
CONTEXT_KEYS = ("job_id", "tool_id", "step")


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON line."""
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        for key in CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class ConsoleFormatter(logging.Formatter):
    """Short human-readable lines for interactive CLI use."""

    def __init__(self) -> None:
        super().__init__("%(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        job_id = getattr(record, "job_id", None)
        if job_id:
            step = getattr(record, "step", None)
            line = f"[{job_id[:8]}{'/' + step if step else ''}] {line}"
        return line


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Configure logging to output to stderr only.

    Clears existing handlers to prevent stdout pollution.

    Args:
        level: Root log level name
        json_format: JSON lines (server modes) or short console lines (CLI)
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else ConsoleFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Third-party loggers share the handler instead of installing their own
    for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error", "fastmcp"]:
        logger = logging.getLogger(logger_name)
        logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False
