"""Thread-safe least-recently-used cache with per-entry expiry."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any


@dataclass
class _Entry:
    value: Any
    expire_at: float


class LRUCache:
    """LRU cache; ``ttl`` is a timedelta or a number of seconds, ``clock`` returns seconds."""

    def __init__(
        self,
        capacity: int,
        ttl: timedelta | float,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._capacity = capacity
        self._ttl = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, _Entry] = OrderedDict()

    def set(self, key: str, value: Any) -> None:
        """Insert a value; an existing key is only marked as recently used."""
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return
            self._entries[key] = _Entry(value, self._clock() + self._ttl)
            if len(self._entries) > self._capacity:
                self._entries.popitem(last=False)

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() > entry.expire_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry.value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)