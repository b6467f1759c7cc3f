"""API key identity resolution.

Resolves the caller's user identity from an optional ``X-API-Key`` header so
downstream dependencies (rate limiting in particular) can tell authenticated
callers apart from anonymous ones. Keys are configured as a comma-separated
list, each optionally suffixed with ``:<user_id>``.

Design principles:
- Single Responsibility: only maps API keys to user identities
- Dependency Injection: used via FastAPI Depends() for loose coupling
- Configuration-driven: keys managed via env vars, not hardcoded
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from app.core.config import settings
from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def _hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()[:16]


def parse_api_keys(keys_string: str | None) -> dict[str, str]:
    """Parse comma-separated API keys into a key -> user id mapping.

    Keys without an explicit user id are mapped to a stable hash of the key,
    so the raw key never doubles as an identity.

    Args:
        keys_string: Comma-separated ``key[:user_id]`` entries, or None.

    Returns:
        Mapping of trimmed, non-empty API keys to user ids.

    Examples:
        >>> parse_api_keys("key1:alice, key2:bob")
        {'key1': 'alice', 'key2': 'bob'}
        >>> parse_api_keys(None)
        {}
    """
    if not keys_string:
        return {}

    keys: dict[str, str] = {}
    for raw in keys_string.split(","):
        raw = raw.strip()
        if not raw:
            continue
        key, _, user_id = raw.partition(":")
        key = key.strip()
        if not key:
            continue
        keys[key] = user_id.strip() or f"key-{_hash_api_key(key)}"
    return keys


def validate_api_key(provided_key: str) -> str:
    """Return the user id bound to ``provided_key``.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If the key is unknown.
    """
    user_id = parse_api_keys(settings.app.api_keys).get(provided_key)
    if user_id is None:
        logger.warning(
            "api_key_validation_failed",
            extra={
                "reason": "invalid_api_key",
                "api_key_hash": _hash_api_key(provided_key),
            },
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid API key",
            details={"hint": "Omit X-API-Key to continue anonymously"},
        )
    return user_id


async def resolve_user_identity(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> str | None:
    """FastAPI dependency resolving the authenticated user id, if any.

    Stores the id on ``request.state.user_id``. Missing keys leave the caller
    anonymous. Unknown keys are rejected with 403 when
    ``APP_API_KEY_REQUIRED`` is set, otherwise treated as anonymous.

    Returns:
        The user id, or None for anonymous callers.

    Raises:
        HTTPException: 403 Forbidden for an unknown key when keys are enforced.
    """
    request.state.user_id = None
    if not x_api_key:
        return None

    try:
        user_id = validate_api_key(x_api_key)
    except AuthenticationAppError as exc:
        if settings.app.api_key_required:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=exc.message,
            ) from exc
        logger.info("auth.anonymous_fallback", extra={"reason": exc.code})
        return None

    logger.debug(
        "auth.success",
        extra={"api_key_hash": _hash_api_key(x_api_key)},
    )
    request.state.user_id = user_id
    return user_id
