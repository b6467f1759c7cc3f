"""Rate limit store interfaces.

The policy evaluator depends on this abstraction (not the concrete
implementation) so the storage backend can be swapped later (e.g., a shared
key-value store with atomic increment-with-expiry) with no evaluator changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass


@dataclass
class RateLimitEntry:
    """Counter for one key within one fixed window.

    Attributes:
        key: Composite key, ``<scope>:<identity>:<route_path>``.
        count: Requests observed in the current window.
        reset_time: UNIX epoch seconds at which the window expires.
    """

    key: str
    count: int
    reset_time: float

    def is_expired(self, now: float) -> bool:
        return self.reset_time <= now


class AbstractRateLimitStore(ABC):
    """Interface for rate limit counter stores.

    Callers must not mutate entries directly; counters only change through
    ``increment``. A lookup followed by a check and an increment is only
    indivisible when performed inside ``atomic()``.
    """

    @abstractmethod
    def atomic(self) -> AbstractContextManager[object]:
        """Return a context manager serializing access to the store."""
        raise NotImplementedError

    @abstractmethod
    def get_or_create(self, key: str, window_ms: int, now: float) -> RateLimitEntry:
        """Return the live entry for ``key``, opening a new window if needed.

        Args:
            key: Composite rate limit key.
            window_ms: Window size in milliseconds for a freshly created entry.
            now: Current UNIX time in seconds.

        Returns:
            The live entry. A missing or expired entry (``reset_time <= now``)
            is replaced by one with ``count=0`` and
            ``reset_time=now + window_ms / 1000``.
        """
        raise NotImplementedError

    @abstractmethod
    def increment(self, entry: RateLimitEntry) -> int:
        """Count one more request against ``entry`` and return the new count."""
        raise NotImplementedError

    @abstractmethod
    def sweep(self, now: float) -> int:
        """Remove every entry whose window has expired.

        Returns:
            Number of entries removed.
        """
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        """Drop all entries."""
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError
