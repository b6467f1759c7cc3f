"""Tests for rate limit policy validation and the predefined policies."""

import pytest

from app.core.config import RateLimitSettings
from app.core.errors import ConfigurationAppError
from app.core.rate_limit import RateLimitPolicy, build_policies


@pytest.mark.parametrize(
    "kwargs",
    [
        {"window_ms": 0, "max": 1},
        {"window_ms": -1000, "max": 1},
        {"window_ms": None, "max": 1},
        {"window_ms": "60000", "max": 1},
        {"window_ms": 1.5, "max": 1},
        {"window_ms": True, "max": 1},
        {"window_ms": 1000, "max": 0},
        {"window_ms": 1000, "max": None},
        {"window_ms": 1000, "max": 1, "authenticated_max": 0},
    ],
)
def test_invalid_policy_fails_fast(kwargs: dict) -> None:
    with pytest.raises(ConfigurationAppError) as exc_info:
        RateLimitPolicy(**kwargs)

    assert exc_info.value.code == "invalid_rate_limit_policy"


def test_missing_required_fields_fail_fast() -> None:
    with pytest.raises(TypeError):
        RateLimitPolicy(max=10)  # type: ignore[call-arg]


def test_policy_is_immutable() -> None:
    policy = RateLimitPolicy(window_ms=1000, max=1)

    with pytest.raises(AttributeError):
        policy.max = 100  # type: ignore[misc]


def test_ceiling_and_message_selection() -> None:
    policy = RateLimitPolicy(
        window_ms=1000,
        max=3,
        authenticated_max=30,
        message="anon",
        authenticated_message="user",
    )

    assert policy.ceiling_for("ip") == 3
    assert policy.ceiling_for("user") == 30
    assert policy.message_for("ip") == "anon"
    assert policy.message_for("user") == "user"
    assert policy.offers_upgrade is True


def test_user_scope_falls_back_to_anonymous_values() -> None:
    policy = RateLimitPolicy(window_ms=1000, max=3, message="anon")

    assert policy.ceiling_for("user") == 3
    assert policy.message_for("user") == "anon"
    assert policy.offers_upgrade is False


def test_build_policies_defaults() -> None:
    policies = build_policies(RateLimitSettings())

    general = policies["general"]
    assert general.window_ms == 15 * 60 * 1000
    assert general.max == 100
    assert general.authentication_aware is False

    ai_search = policies["ai_search"]
    assert ai_search.window_ms == 24 * 60 * 60 * 1000
    assert ai_search.max == 3
    assert ai_search.authenticated_max == 50
    assert ai_search.authentication_aware is True
    assert "3 requests per day" in ai_search.message


@pytest.mark.parametrize(
    "overrides",
    [
        {"general_max": 0},
        {"general_window_ms": 0},
        {"ai_search_max": -1},
        {"ai_search_authenticated_max": 0},
    ],
)
def test_build_policies_rejects_invalid_settings(overrides: dict) -> None:
    with pytest.raises(ConfigurationAppError):
        build_policies(RateLimitSettings(**overrides))
