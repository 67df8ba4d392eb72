from __future__ import annotations

import threading
import time
from typing import Callable, Protocol


class ResponseCache(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, body: str, ttl_sec: float) -> None: ...


class InMemoryResponseCache:
    """Process-local response cache with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._lock = threading.Lock()
        self._clock = clock or time.monotonic
        self._rows: dict[str, tuple[float, str]] = {}

    def _prune_expired(self, now: float) -> None:
        expired = [k for k, (until, _) in self._rows.items() if until <= now]
        for k in expired:
            self._rows.pop(k, None)

    def get(self, key: str) -> str | None:
        now = self._clock()
        with self._lock:
            self._prune_expired(now)
            row = self._rows.get(key)
            if row is None:
                return None
            return row[1]

    def put(self, key: str, body: str, ttl_sec: float) -> None:
        if ttl_sec <= 0:
            return
        now = self._clock()
        with self._lock:
            self._rows[key] = (now + ttl_sec, body)

    def clear(self) -> None:
        with self._lock:
            self._rows.clear()

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            self._prune_expired(now)
            return len(self._rows)
