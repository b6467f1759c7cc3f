"""Authentication-aware rate limiting for FastAPI routes.

This module holds the policy evaluator and wires it into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency built by ``rate_limit()``.
- Swap-friendly: counters live behind ``AbstractRateLimitStore``.
- Fail fast: invalid policies raise at startup instead of running unlimited.

Strategy:
- Fixed window per ``<scope>:<identity>:<route_path>`` key.
- Authenticated callers on authentication-aware routes are counted per user
  and may get a higher ceiling; everyone else is counted per client IP.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, Literal

from fastapi import Depends, Request, Response

from app.adapters.rate_limit.base import AbstractRateLimitStore
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.core.auth import resolve_user_identity
from app.core.config import RateLimitSettings, settings
from app.core.errors import ConfigurationAppError, RateLimitExceededError
from app.schemas.rate_limit import RateLimitExceededResponse, UpgradeHint

logger = logging.getLogger(__name__)

RateLimitType = Literal["ip", "user"]

DEFAULT_MESSAGE = "Too many requests. Please try again later."
UNKNOWN_IDENTITY = "unknown"


def _require_positive_int(name: str, value: Any, *, policy: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationAppError(
            code="invalid_rate_limit_policy",
            message=f"Rate limit policy '{policy}' requires {name} to be a positive integer",
            details={"field": name, "actual_value": value},
        )


@dataclass(frozen=True)
class RateLimitPolicy:
    """Immutable per-route rate limit configuration.

    Attributes:
        window_ms: Window duration in milliseconds.
        max: Ceiling for anonymous (IP-based) callers.
        authenticated_max: Optional ceiling for authenticated callers.
        authentication_aware: Count authenticated callers per user instead of per IP.
        message: Denial message for anonymous callers.
        authenticated_message: Denial message for authenticated callers.
        name: Label used in logs and listings.

    Raises:
        ConfigurationAppError: If ``window_ms``, ``max`` or ``authenticated_max``
            are missing or not positive integers.
    """

    window_ms: int
    max: int
    authenticated_max: int | None = None
    authentication_aware: bool = False
    message: str | None = None
    authenticated_message: str | None = None
    name: str = "default"

    def __post_init__(self) -> None:
        _require_positive_int("window_ms", self.window_ms, policy=self.name)
        _require_positive_int("max", self.max, policy=self.name)
        if self.authenticated_max is not None:
            _require_positive_int("authenticated_max", self.authenticated_max, policy=self.name)

    def ceiling_for(self, scope: RateLimitType) -> int:
        if scope == "user" and self.authenticated_max is not None:
            return self.authenticated_max
        return self.max

    def message_for(self, scope: RateLimitType) -> str:
        if scope == "user" and self.authenticated_message:
            return self.authenticated_message
        return self.message or DEFAULT_MESSAGE

    @property
    def offers_upgrade(self) -> bool:
        """True when authenticating grants a strictly higher ceiling."""
        return self.authenticated_max is not None and self.authenticated_max > self.max


@dataclass(frozen=True)
class RequestDescriptor:
    """Framework-independent view of the request being rate limited."""

    method: str
    path: str
    client_address: str | None = None
    forwarded_for: str | None = None
    authenticated_identity: str | None = None


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of evaluating one request against a policy."""

    allowed: bool
    key: str
    limit: int
    remaining: int
    reset_time: float
    rate_limit_type: RateLimitType
    retry_after: int | None = None
    message: str | None = None
    upgrade: UpgradeHint | None = field(default=None)

    @property
    def reset_time_iso(self) -> str:
        return format_reset_time(self.reset_time)

    def headers(self) -> dict[str, str]:
        """Informational headers attached to every evaluated response."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_time_iso,
            "X-RateLimit-Type": self.rate_limit_type,
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after or 0)
        return headers

    def to_payload(self) -> dict[str, Any]:
        """JSON body of the 429 response."""
        body = RateLimitExceededResponse(
            message=self.message or DEFAULT_MESSAGE,
            retry_after=self.retry_after or 0,
            limit=self.limit,
            remaining=0,
            reset_time=self.reset_time_iso,
            rate_limit_type=self.rate_limit_type,
            upgrade=self.upgrade,
        )
        return body.model_dump(by_alias=True, exclude_none=True)


def format_reset_time(reset_time: float) -> str:
    """Render epoch seconds as an ISO-8601 UTC instant with millisecond precision."""
    instant = datetime.fromtimestamp(reset_time, tz=timezone.utc)
    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def resolve_client_ip(client_address: str | None, forwarded_for: str | None) -> str:
    """Pick the caller address used for anonymous keys.

    Prefers the address resolved by the server, then the first entry of
    ``X-Forwarded-For``, and finally the literal ``"unknown"``. Callers that
    fall through to ``"unknown"`` share a single counter.
    """
    if client_address:
        return client_address
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return UNKNOWN_IDENTITY


def resolve_identity(
    policy: RateLimitPolicy, descriptor: RequestDescriptor
) -> tuple[RateLimitType, str]:
    """Return the ``(scope, identity)`` pair the request is counted against."""
    if policy.authentication_aware and descriptor.authenticated_identity:
        return "user", descriptor.authenticated_identity
    return "ip", resolve_client_ip(descriptor.client_address, descriptor.forwarded_for)


def build_rate_limit_key(scope: RateLimitType, identity: str, route_path: str) -> str:
    return f"{scope}:{identity}:{route_path}"


class RateLimitEvaluator:
    """Decide allow/deny for requests against a single policy.

    The lookup, the ceiling check and the increment run inside
    ``store.atomic()`` with no suspension point, so concurrent requests for
    the same key cannot lose updates.
    """

    def __init__(
        self,
        policy: RateLimitPolicy,
        store: AbstractRateLimitStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.policy = policy
        self._store = store
        self._clock = clock

    def evaluate(self, descriptor: RequestDescriptor) -> RateLimitDecision:
        scope, identity = resolve_identity(self.policy, descriptor)
        key = build_rate_limit_key(scope, identity, descriptor.path)
        ceiling = self.policy.ceiling_for(scope)
        now = self._clock()

        with self._store.atomic():
            entry = self._store.get_or_create(key, self.policy.window_ms, now)
            if entry.count >= ceiling:
                return self._deny(descriptor, key, scope, ceiling, entry.reset_time, now)
            count = self._store.increment(entry)
            reset_time = entry.reset_time

        return RateLimitDecision(
            allowed=True,
            key=key,
            limit=ceiling,
            remaining=max(0, ceiling - count),
            reset_time=reset_time,
            rate_limit_type=scope,
        )

    def _deny(
        self,
        descriptor: RequestDescriptor,
        key: str,
        scope: RateLimitType,
        ceiling: int,
        reset_time: float,
        now: float,
    ) -> RateLimitDecision:
        upgrade = None
        # Only anonymous callers on routes that count users separately can
        # raise their ceiling by signing in.
        if (
            descriptor.authenticated_identity is None
            and self.policy.authentication_aware
            and self.policy.offers_upgrade
        ):
            upgrade = UpgradeHint(
                suggestion=(
                    f"Sign in to raise your limit to {self.policy.authenticated_max} "
                    "requests per window."
                ),
                authenticated_limit=self.policy.authenticated_max,
                current_limit=self.policy.max,
            )

        return RateLimitDecision(
            allowed=False,
            key=key,
            limit=ceiling,
            remaining=0,
            reset_time=reset_time,
            rate_limit_type=scope,
            retry_after=max(0, math.ceil(reset_time - now)),
            message=self.policy.message_for(scope),
            upgrade=upgrade,
        )


_store: AbstractRateLimitStore = InMemoryRateLimitStore()


def get_rate_limit_store() -> AbstractRateLimitStore:
    """Return the process-wide rate limit store."""
    return _store


def reset_rate_limit_store(store: AbstractRateLimitStore | None = None) -> AbstractRateLimitStore:
    """Replace the process-wide store (primarily for tests)."""
    global _store
    _store = store if store is not None else InMemoryRateLimitStore()
    return _store


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    route_path = getattr(route, "path", None)
    return route_path or request.url.path


def build_request_descriptor(request: Request, identity: str | None = None) -> RequestDescriptor:
    """Translate a Starlette request into a ``RequestDescriptor``."""
    if identity is None:
        identity = getattr(request.state, "user_id", None)
    return RequestDescriptor(
        method=request.method,
        path=_route_path(request),
        client_address=request.client.host if request.client else None,
        forwarded_for=request.headers.get("X-Forwarded-For"),
        authenticated_identity=identity,
    )


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing identities."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def rate_limit(
    policy: RateLimitPolicy,
    *,
    store: AbstractRateLimitStore | None = None,
    clock: Callable[[], float] | None = None,
) -> Callable[..., Awaitable[RateLimitDecision | None]]:
    """Build a FastAPI dependency enforcing ``policy``.

    Usage:
        ai_search_limit = rate_limit(ai_search_policy)

        @router.post("/ai-search", dependencies=[Depends(ai_search_limit)])
        async def ai_search(): ...

    Args:
        policy: Policy applied to every route using the dependency.
        store: Store to count against; defaults to the process-wide store,
            resolved on every call so tests can swap it.
        clock: Time source returning UNIX seconds; defaults to ``time.time``.

    Returns:
        Async dependency returning the decision when allowed (``None`` when
        rate limiting is disabled) and raising ``RateLimitExceededError``
        when denied.
    """

    async def enforce_rate_limit(
        request: Request,
        response: Response,
        identity: Annotated[str | None, Depends(resolve_user_identity)],
    ) -> RateLimitDecision | None:
        if not settings.rate_limit.enabled:
            return None

        evaluator = RateLimitEvaluator(
            policy,
            store if store is not None else get_rate_limit_store(),
            clock=clock or time.time,
        )
        descriptor = build_request_descriptor(request, identity)
        decision = evaluator.evaluate(descriptor)

        log_extra = {
            "policy": policy.name,
            "key_type": decision.rate_limit_type,
            "key_hash": _hash_limiter_key(decision.key),
            "route": descriptor.path,
            "limit": decision.limit,
            "remaining": decision.remaining,
            "window_ms": policy.window_ms,
        }

        if not decision.allowed:
            logger.warning(
                "rate_limit.exceeded",
                extra={**log_extra, "retry_after_s": decision.retry_after},
            )
            raise RateLimitExceededError(decision)

        logger.debug("rate_limit.allowed", extra=log_extra)
        if settings.rate_limit.include_headers:
            response.headers.update(decision.headers())
        return decision

    return enforce_rate_limit


def build_policies(cfg: RateLimitSettings) -> dict[str, RateLimitPolicy]:
    """Build the predefined policies from settings.

    Raises:
        ConfigurationAppError: If any configured window or ceiling is invalid.
    """
    general = RateLimitPolicy(
        name="general",
        window_ms=cfg.general_window_ms,
        max=cfg.general_max,
        message="Too many requests from this IP. Please try again later.",
    )
    ai_search = RateLimitPolicy(
        name="ai_search",
        window_ms=cfg.ai_search_window_ms,
        max=cfg.ai_search_max,
        authenticated_max=cfg.ai_search_authenticated_max,
        authentication_aware=True,
        message=(
            f"Daily AI search limit reached ({cfg.ai_search_max} requests per day). "
            "Please register for unlimited access or try again tomorrow."
        ),
        authenticated_message="AI search limit reached for your account. Please try again later.",
    )
    return {general.name: general, ai_search.name: ai_search}


# Built at import time so invalid settings stop the app before it serves traffic.
POLICIES = build_policies(settings.rate_limit)

general_rate_limit = rate_limit(POLICIES["general"])
ai_search_rate_limit = rate_limit(POLICIES["ai_search"])
