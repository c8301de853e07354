from __future__ import annotations

import hashlib
import json
import threading
import time
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from cachetools import TTLCache

T = TypeVar("T")

DEFAULT_MAX_ENTRIES = 256


class StageCache(Generic[T]):
    """Thread-safe bounded cache for agent stage results.

    Backed by ``cachetools.TTLCache``: entries expire after ``ttl_seconds``
    and the least recently used entry is evicted once ``max_entries`` is
    reached, so keys that are never read again do not accumulate.
    """

    def __init__(
        self,
        ttl_seconds: float = 600.0,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._data: TTLCache[str, T] = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=clock)
        self._lock = threading.Lock()

    def get(self, key: str) -> T | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: T) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def get_or_set(self, key: str, factory: Callable[[], T]) -> tuple[T, bool]:
        """Return (value, hit). The factory runs outside the lock."""
        cached = self.get(key)
        if cached is not None:
            return cached, True
        value = factory()
        self.set(key, value)
        return value, False

    def __len__(self) -> int:
        with self._lock:
            self._data.expire()
            return len(self._data)


def content_hash(obj: Any) -> str:
    """Short stable hash of a JSON-serializable value."""
    raw = json.dumps(obj, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
