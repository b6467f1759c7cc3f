"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the environment before settings are imported so no .env file is
loaded and every test sees the same API keys and limits.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("APP_API_KEY_REQUIRED", "false")
os.environ.setdefault("APP_API_KEYS", "test-key-alice:alice,test-key-bob:bob,test-key-anon")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from app.core.rate_limit import reset_rate_limit_store  # noqa: E402


class FakeClock:
    """Deterministic clock returning UNIX seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def fresh_rate_limit_store():
    """Give every test an empty process-wide store."""
    store = reset_rate_limit_store()
    yield store
    store.clear()
