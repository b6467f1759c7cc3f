"""Unit tests for API key identity resolution."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from app.core.auth import parse_api_keys, resolve_user_identity, validate_api_key
from app.core.errors import AuthenticationAppError


def _request() -> MagicMock:
    request = MagicMock()
    request.state = MagicMock()
    return request


class TestParseAPIKeys:
    """Test API key parsing utility function."""

    def test_parse_keys_with_user_ids(self) -> None:
        assert parse_api_keys("k1:alice,k2:bob") == {"k1": "alice", "k2": "bob"}

    def test_parse_keys_with_whitespace(self) -> None:
        assert parse_api_keys(" k1 : alice , k2:bob ") == {"k1": "alice", "k2": "bob"}

    def test_key_without_user_id_maps_to_stable_hash(self) -> None:
        first = parse_api_keys("secret-key")
        second = parse_api_keys("secret-key")

        user_id = first["secret-key"]
        assert user_id.startswith("key-")
        assert "secret-key" not in user_id
        assert first == second

    @pytest.mark.parametrize("raw", [None, "", "   ,  ,  ", ":orphan"])
    def test_empty_inputs_return_empty_mapping(self, raw) -> None:
        assert parse_api_keys(raw) == {}

    def test_duplicate_keys_keep_last_user_id(self) -> None:
        assert parse_api_keys("k:alice,k:bob") == {"k": "bob"}


class TestValidateAPIKey:
    """Test core API key validation logic."""

    @patch("app.core.auth.settings")
    def test_valid_key_returns_user_id(self, mock_settings) -> None:
        mock_settings.app.api_keys = "valid-1:alice,valid-2:bob"

        assert validate_api_key("valid-1") == "alice"
        assert validate_api_key("valid-2") == "bob"

    @patch("app.core.auth.settings")
    def test_invalid_key_raises(self, mock_settings) -> None:
        mock_settings.app.api_keys = "valid-1:alice"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("invalid")

        assert exc_info.value.code == "invalid_api_key"

    @patch("app.core.auth.settings")
    def test_no_keys_configured_rejects_everything(self, mock_settings) -> None:
        mock_settings.app.api_keys = None

        with pytest.raises(AuthenticationAppError):
            validate_api_key("anything")


class TestResolveUserIdentity:
    """Test FastAPI dependency resolving the caller identity."""

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_missing_header_is_anonymous(self, mock_settings) -> None:
        request = _request()

        assert await resolve_user_identity(request, x_api_key=None) is None
        assert request.state.user_id is None

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_valid_key_sets_state(self, mock_settings) -> None:
        mock_settings.app.api_keys = "valid-1:alice"
        request = _request()

        assert await resolve_user_identity(request, x_api_key="valid-1") == "alice"
        assert request.state.user_id == "alice"

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_invalid_key_is_anonymous_when_not_required(self, mock_settings) -> None:
        mock_settings.app.api_keys = "valid-1:alice"
        mock_settings.app.api_key_required = False
        request = _request()

        assert await resolve_user_identity(request, x_api_key="wrong") is None
        assert request.state.user_id is None

    @pytest.mark.asyncio
    @patch("app.core.auth.settings")
    async def test_invalid_key_raises_403_when_required(self, mock_settings) -> None:
        mock_settings.app.api_keys = "valid-1:alice"
        mock_settings.app.api_key_required = True

        with pytest.raises(HTTPException) as exc_info:
            await resolve_user_identity(_request(), x_api_key="wrong")

        assert exc_info.value.status_code == 403
        assert "Invalid API key" in exc_info.value.detail
