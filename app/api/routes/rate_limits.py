from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.rate_limit import POLICIES, general_rate_limit, get_rate_limit_store
from app.schemas.rate_limit import (
    RateLimitPoliciesResponse,
    RateLimitPolicyInfo,
    RateLimitStatusResponse,
)

router = APIRouter(tags=["Rate limits"], dependencies=[Depends(general_rate_limit)])


@router.get("/rate-limits", response_model=RateLimitPoliciesResponse)
async def list_policies() -> RateLimitPoliciesResponse:
    """List the configured rate limit policies."""
    return RateLimitPoliciesResponse(
        enabled=settings.rate_limit.enabled,
        policies=[
            RateLimitPolicyInfo(
                name=policy.name,
                window_ms=policy.window_ms,
                max=policy.max,
                authenticated_max=policy.authenticated_max,
                authentication_aware=policy.authentication_aware,
            )
            for policy in POLICIES.values()
        ],
    )


@router.get("/rate-limits/status", response_model=RateLimitStatusResponse)
async def store_status(request: Request) -> RateLimitStatusResponse:
    sweeper = getattr(request.app.state, "rate_limit_sweeper", None)
    return RateLimitStatusResponse(
        enabled=settings.rate_limit.enabled,
        active_entries=len(get_rate_limit_store()),
        sweeper_running=bool(sweeper and sweeper.running),
    )
