from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.errors import ValidationAppError
from app.core.rate_limit import RateLimitDecision, ai_search_rate_limit
from app.schemas.rate_limit import AISearchRequest, AISearchResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Search"])


@router.post("/ai-search", response_model=AISearchResponse)
async def ai_search(
    body: AISearchRequest,
    decision: Annotated[RateLimitDecision | None, Depends(ai_search_rate_limit)],
) -> AISearchResponse:
    """Accept an AI search query under the adaptive daily limit.

    Anonymous callers share a small per-IP budget; callers presenting a valid
    X-API-Key are counted per user against a higher ceiling.

    Raises:
        ValidationAppError: If the query is blank after whitespace normalization.
    """
    query = " ".join(body.query.split())
    if not query:
        raise ValidationAppError(code="empty_query", message="Search query must not be blank")

    scope = decision.rate_limit_type if decision else "ip"
    logger.info("search.accepted", extra={"query_chars": len(query), "rate_limit_type": scope})
    return AISearchResponse(query=query, rate_limit_type=scope)
