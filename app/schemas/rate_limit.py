"""Pydantic schemas for rate limit responses."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


class UpgradeHint(BaseModel):
    """Suggestion attached to anonymous denials when signing in raises the ceiling."""

    model_config = ConfigDict(populate_by_name=True)

    suggestion: str = Field(..., description="Human-readable upgrade suggestion.")
    authenticated_limit: int = Field(
        ..., alias="authenticatedLimit", description="Ceiling granted to authenticated callers."
    )
    current_limit: int = Field(
        ..., alias="currentLimit", description="Ceiling currently applied to the caller."
    )


class RateLimitExceededResponse(BaseModel):
    """Body of an HTTP 429 response."""

    model_config = ConfigDict(populate_by_name=True)

    status: Literal["error"] = "error"
    message: str = Field(..., description="Denial message for the applied ceiling.")
    retry_after: int = Field(
        ..., alias="retryAfter", description="Seconds until the current window resets."
    )
    limit: int = Field(..., description="Ceiling applied to the caller.")
    remaining: int = Field(0, description="Always 0 on denial.")
    reset_time: str = Field(
        ..., alias="resetTime", description="ISO-8601 instant at which the window resets."
    )
    rate_limit_type: Literal["ip", "user"] = Field(
        ..., alias="rateLimitType", description="Whether the caller was limited by IP or by user."
    )
    upgrade: UpgradeHint | None = Field(
        None, description="Present when authenticating would raise the ceiling."
    )


class RateLimitPolicyInfo(BaseModel):
    """Public description of a configured policy."""

    name: str
    window_ms: int
    max: int
    authenticated_max: int | None = None
    authentication_aware: bool = False


class RateLimitPoliciesResponse(BaseModel):
    enabled: bool
    policies: List[RateLimitPolicyInfo] = Field(default_factory=list)


class RateLimitStatusResponse(BaseModel):
    """Operator view of the store."""

    enabled: bool
    active_entries: int = Field(..., description="Entries currently held by the store.")
    sweeper_running: bool = Field(..., description="Whether the periodic sweep task is alive.")


class AISearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=500, description="Free-text search query.")


class AISearchResponse(BaseModel):
    query: str = Field(..., description="Normalized query.")
    rate_limit_type: Literal["ip", "user"] = Field(
        ..., description="Scope the request was counted against."
    )
