"""Logging configuration for Quill.

Supports text and JSON output. JSON is suitable for log aggregation.

Usage:
    from quill.logging_setup import configure_logging

    configure_logging()

Format and level are read from the `[general]` config section
(or QUILL_LOG_FORMAT / QUILL_LOG_LEVEL).
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from .config import get_config

_CONFIGURED = False

_log_context: ContextVar[dict[str, Any]] = ContextVar("quill_log_context", default={})

_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "asctime", "taskName",
}


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Produces log entries like:
    {"timestamp": "2024-01-15T10:30:45.123Z", "level": "INFO", "logger": "quill.modify", "message": "..."}
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra_fields = {
                key: value
                for key, value in record.__dict__.items()
                if key not in _RESERVED_ATTRS and not key.startswith("_")
            }
            if extra_fields:
                log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def configure_logging(*, log_path: Path | None = None, force: bool = False) -> None:
    """Configure Quill logging.

    - Logs to stderr for developer visibility.
    - Logs to a rotating file under the data dir for later inspection.

    Safe to call multiple times; it will not duplicate handlers.
    """

    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    config = get_config()
    level_name = config.general.log_level.upper().strip()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    formatter: logging.Formatter
    if config.general.log_format == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    # Avoid adding duplicate handlers if something else already configured logging.
    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        stream_handler.addFilter(ContextFilter())
        root.addHandler(stream_handler)

    resolved_log_path = log_path or config.storage.log_path
    try:
        resolved_log_path.parent.mkdir(parents=True, exist_ok=True)
        if not any(
            isinstance(h, RotatingFileHandler)
            and getattr(h, "baseFilename", None) == str(resolved_log_path)
            for h in root.handlers
        ):
            file_handler = RotatingFileHandler(
                filename=str(resolved_log_path),
                maxBytes=config.general.log_max_bytes,
                backupCount=config.general.log_backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(ContextFilter())
            root.addHandler(file_handler)
    except OSError as e:
        root.warning("Could not create log file at %s: %s", resolved_log_path, e)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _CONFIGURED = True


class ContextFilter(logging.Filter):
    """Copy the fields of the active LogContext onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class LogContext:
    """Context manager for adding extra fields to log records.

    Fields live in a ContextVar, so concurrent requests served from
    different threads or tasks each see only their own context.

    Usage:
        with LogContext(conversation_id="conv_123"):
            logger.info("Planning")  # record carries conversation_id
    """

    def __init__(self, **kwargs: Any):
        self.extra = kwargs
        self._token: Token[dict[str, Any]] | None = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set({**_log_context.get(), **self.extra})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None