"""Background sweep of expired rate limit entries.

The sweep only reclaims memory; expired entries are already ignored by
``get_or_create``. A failed sweep is logged and retried on the next tick.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimitStore

logger = logging.getLogger(__name__)


class RateLimitSweeper:
    """Periodically calls ``store.sweep`` from an asyncio task."""

    def __init__(
        self,
        store: AbstractRateLimitStore,
        *,
        interval_seconds: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._store = store
        self._interval = interval_seconds
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> int:
        """Run a single sweep and log the outcome.

        Returns:
            Number of entries removed.
        """
        removed = self._store.sweep(self._clock())
        logger.info(
            "rate_limit.sweep_completed",
            extra={"removed": removed, "active_entries": len(self._store)},
        )
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep_once()
            except Exception as exc:
                logger.error(
                    "rate_limit.sweep_failed",
                    extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                )

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("rate_limit.sweeper_started", extra={"interval_s": self._interval})

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("rate_limit.sweeper_stopped")
