from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check for load balancers and monitoring.

    Not rate limited, so health checks never consume a caller's budget.
    """

    return {"status": "ok"}
