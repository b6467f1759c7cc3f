"""In-memory fixed-window rate limit store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a re-entrant lock around shared state.
- State is lost on restart.
"""

from __future__ import annotations

import threading
from contextlib import AbstractContextManager

from app.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitEntry


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Store keeping one ``RateLimitEntry`` per key in a dict.

    Expired entries are treated as absent on every ``get_or_create`` call, so
    ``sweep`` only reclaims memory and never changes a decision.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker enforces its
        own independent limits.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}

    def atomic(self) -> AbstractContextManager[object]:
        return self._lock

    def get_or_create(self, key: str, window_ms: int, now: float) -> RateLimitEntry:
        if not key:
            raise ValueError("key must be a non-empty string")
        if window_ms <= 0:
            raise ValueError("window_ms must be > 0")

        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(now):
                entry = RateLimitEntry(key=key, count=0, reset_time=now + window_ms / 1000)
                self._entries[key] = entry
            return entry

    def increment(self, entry: RateLimitEntry) -> int:
        with self._lock:
            entry.count += 1
            return entry.count

    def sweep(self, now: float) -> int:
        with self._lock:
            expired_keys = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired_keys:
                del self._entries[key]
            return len(expired_keys)

    def get(self, key: str) -> RateLimitEntry | None:
        """Return the stored entry for ``key`` (expired or not), if any."""
        with self._lock:
            return self._entries.get(key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryRateLimitStore(size={len(self)})"
