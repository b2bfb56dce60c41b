"""Structured JSON logging with correlation ID support.

Every opsdesk logger writes through one shared handler, so an entry point can
move all log output at once: the operator client sends it to stderr and keeps
stdout for its own prompts.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import IO, Any

from .correlation import get_correlation_id


class JsonFormatter(logging.Formatter):
    """JSON formatter that includes correlation ID, poll thread and extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        # Poll loops and scheduler jobs run off the main thread
        if record.threadName and record.threadName != "MainThread":
            log_obj["thread"] = record.threadName

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_obj.update(record.extra_fields)

        return json.dumps(log_obj, default=str, ensure_ascii=False)


_handler = logging.StreamHandler(sys.stdout)
_handler.setFormatter(JsonFormatter())


def _level_from_env() -> int:
    level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Get a logger configured for JSON output on the shared handler."""
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.addHandler(_handler)
        logger.setLevel(_level_from_env())
        logger.propagate = False

    return logger


def set_log_stream(stream: IO[str]) -> IO[str]:
    """Redirect every opsdesk logger to ``stream``; returns the previous stream."""
    previous = _handler.stream
    _handler.setStream(stream)
    return previous
