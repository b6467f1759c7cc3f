"""Tests for the background sweep of expired rate limit entries."""

import asyncio
from unittest.mock import MagicMock

import pytest

from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.adapters.rate_limit.sweeper import RateLimitSweeper


def test_sweep_once_removes_expired_entries(clock) -> None:
    store = InMemoryRateLimitStore()
    store.get_or_create("old", 1_000, clock())
    store.get_or_create("new", 60_000, clock())
    clock.advance(5)

    removed = RateLimitSweeper(store, clock=clock).sweep_once()

    assert removed == 1
    assert store.get("old") is None
    assert store.get("new") is not None


def test_invalid_interval() -> None:
    with pytest.raises(ValueError):
        RateLimitSweeper(InMemoryRateLimitStore(), interval_seconds=0)


@pytest.mark.asyncio
async def test_background_loop_sweeps_periodically(clock) -> None:
    store = InMemoryRateLimitStore()
    store.get_or_create("old", 1_000, clock())
    clock.advance(2)

    sweeper = RateLimitSweeper(store, interval_seconds=0.01, clock=clock)
    sweeper.start()
    assert sweeper.running is True

    await asyncio.sleep(0.05)
    await sweeper.stop()

    assert sweeper.running is False
    assert len(store) == 0


@pytest.mark.asyncio
async def test_failed_sweep_does_not_stop_loop() -> None:
    calls = []

    def _sweep(now: float) -> int:
        calls.append(now)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return 0

    store = MagicMock()
    store.sweep.side_effect = _sweep
    store.__len__.return_value = 0

    sweeper = RateLimitSweeper(store, interval_seconds=0.01)
    sweeper.start()
    await asyncio.sleep(0.05)

    assert sweeper.running is True
    await sweeper.stop()
    assert store.sweep.call_count >= 2


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_without_start_is_safe() -> None:
    sweeper = RateLimitSweeper(InMemoryRateLimitStore(), interval_seconds=60)

    await sweeper.stop()

    sweeper.start()
    first_task = sweeper._task
    sweeper.start()
    assert sweeper._task is first_task

    await sweeper.stop()
