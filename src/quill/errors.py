from __future__ import annotations

import hashlib
import json
import logging
import threading
import traceback
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from .db import Database, get_db

logger = logging.getLogger(__name__)

_RECENT_SIGNATURES: dict[str, datetime] = {}
_SIGNATURES_LOCK = threading.Lock()


class QuillError(Exception):
    """Base class for errors raised by Quill."""


class ValidationError(QuillError):
    """A request was malformed or missing required fields."""


class NotFoundError(QuillError):
    """A requested resource (post version, etc.) does not exist."""


class JSONParseError(QuillError):
    """LLM output could not be turned into a JSON object."""

    def __init__(self, message: str, *, raw: str = "", cause: Exception | None = None) -> None:
        super().__init__(message)
        self.raw = raw
        self.cause = cause


def _error_signature(*, operation: str, exc: BaseException) -> str:
    material = f"{operation}|{type(exc).__name__}|{str(exc)}".encode("utf-8", errors="replace")
    return hashlib.sha256(material).hexdigest()


def record_error(
    *,
    source: str,
    operation: str,
    exc: BaseException,
    context: dict[str, Any] | None = None,
    db: Database | None = None,
    dedupe_window_seconds: int = 60,
    include_traceback: bool = True,
) -> str | None:
    """Record an error as a local event.

    - Stores a metadata-only error summary in SQLite.
    - Optionally deduplicates repeated identical errors for a short window.

    Returns the stored event id, or None when deduplicated or the write failed.
    """

    signature = _error_signature(operation=operation, exc=exc)
    now = datetime.now(UTC)

    if dedupe_window_seconds > 0:
        cutoff = now - timedelta(seconds=dedupe_window_seconds)
        with _SIGNATURES_LOCK:
            for seen_signature, seen_at in list(_RECENT_SIGNATURES.items()):
                if seen_at < cutoff:
                    del _RECENT_SIGNATURES[seen_signature]
            if signature in _RECENT_SIGNATURES:
                return None
            _RECENT_SIGNATURES[signature] = now

    tb_text: str | None = None
    if include_traceback:
        tb_text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        # Keep the payload bounded.
        if len(tb_text) > 10_000:
            tb_text = tb_text[-10_000:]

    payload: dict[str, Any] = {
        "kind": "error",
        "signature": signature,
        "operation": operation,
        "error_type": type(exc).__name__,
        "message": str(exc),
        "context": context or {},
        "traceback": tb_text,
        "ts": now.isoformat(),
    }

    try:
        target = db if db is not None else get_db()
        event_id = str(uuid.uuid4())
        target.insert_event(
            event_id=event_id,
            source=source,
            kind="error",
            ts=now.isoformat(),
            payload_metadata=json.dumps(payload, ensure_ascii=False, default=str),
            note=f"{operation}: {type(exc).__name__}",
        )
        return event_id
    except Exception as write_exc:  # noqa: BLE001
        logger.debug("Failed to record error event: %s", write_exc)
        return None
