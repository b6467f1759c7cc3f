"""Rate limit storage adapters.

This package provides a small abstraction layer so the service can start
with an in-memory store and later migrate to a shared store without
changing the policy evaluator or the API layer.
"""

from app.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitEntry
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.adapters.rate_limit.sweeper import RateLimitSweeper

__all__ = [
    "AbstractRateLimitStore",
    "InMemoryRateLimitStore",
    "RateLimitEntry",
    "RateLimitSweeper",
]
