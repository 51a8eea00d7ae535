"""Tests for wpagentic_mcp.guard module."""

from unittest.mock import MagicMock

import pytest

from wpagentic_mcp.config import BridgeSettings
from wpagentic_mcp.errors import ForbiddenError, UnauthorizedError
from wpagentic_mcp.guard import (
    AccessGuard,
    GuardConfig,
    InboundRequest,
    authorize,
    get_access_context,
    is_allowed_origin,
)

APP_URL = "https://app.example.com/api/wp/connect"


def make_request(origin=None, url=APP_URL, **headers):
    if origin is not None:
        headers["Origin"] = origin
    return InboundRequest(url=url, headers=headers)


def resolve_alice(request):
    return "alice"


def resolve_nobody(request):
    return None


class TestInboundRequest:
    def test_header_lookup_case_insensitive(self):
        request = InboundRequest(url=APP_URL, headers={"origin": "https://app.example.com"})
        assert request.header("Origin") == "https://app.example.com"
        assert request.origin == "https://app.example.com"

    def test_blank_origin_is_missing(self):
        assert make_request(origin="  ").origin is None


class TestGuardConfig:
    def test_normalizes_origins(self):
        config = GuardConfig(allowed_origins=["https://A.example.com/", " ", ""])
        assert config.allowed_origins == ["https://a.example.com"]

    def test_from_list(self):
        config = GuardConfig.from_list("https://a.example.com, https://b.example.com")
        assert config.allowed_origins == ["https://a.example.com", "https://b.example.com"]

    def test_from_settings(self):
        settings = BridgeSettings(
            allowed_origins=["https://a.example.com"],
            app_origin="https://app.example.com",
            allow_missing_origin=False,
        )
        config = GuardConfig.from_settings(settings)
        assert config.app_origin == "https://app.example.com"
        assert config.allow_missing_origin is False


class TestIsAllowedOrigin:
    """Tests for the origin check."""

    def test_same_origin(self):
        assert is_allowed_origin(make_request("https://app.example.com"), GuardConfig())

    def test_same_origin_case_insensitive(self):
        assert is_allowed_origin(make_request("https://APP.example.com"), GuardConfig())

    def test_allow_listed(self):
        config = GuardConfig(allowed_origins=["https://admin.example.com"])
        assert is_allowed_origin(make_request("https://admin.example.com"), config)

    def test_app_origin(self):
        config = GuardConfig(app_origin="https://app.example.com")
        request = make_request("https://app.example.com", url="http://10.0.0.5:3000/api")
        assert is_allowed_origin(request, config)

    def test_foreign_origin(self):
        config = GuardConfig(allowed_origins=["https://admin.example.com"])
        assert not is_allowed_origin(make_request("https://evil.example"), config)

    def test_null_origin(self):
        assert not is_allowed_origin(make_request("null"), GuardConfig())

    def test_missing_origin(self):
        assert is_allowed_origin(make_request(), GuardConfig())
        assert not is_allowed_origin(make_request(), GuardConfig(allow_missing_origin=False))


class TestAuthorize:
    """Tests for authorize()."""

    def test_allowed(self):
        access = authorize(make_request("https://app.example.com"), resolve_alice)
        assert access.session_user_id == "alice"
        assert access.origin_header == "https://app.example.com"

    def test_origin_checked_before_session(self):
        """A foreign origin is rejected even without a session, and the resolver never runs."""
        resolver = MagicMock(return_value=None)
        with pytest.raises(ForbiddenError) as exc_info:
            authorize(make_request("https://evil.example"), resolver)
        assert exc_info.value.origin == "https://evil.example"
        resolver.assert_not_called()

    def test_no_session(self):
        with pytest.raises(UnauthorizedError):
            authorize(make_request("https://app.example.com"), resolve_nobody)

    def test_blank_session(self):
        with pytest.raises(UnauthorizedError):
            authorize(make_request(), lambda request: "   ")

    def test_session_optional(self):
        access = authorize(make_request(), resolve_nobody, require_session=False)
        assert access.session_user_id is None

    def test_skip_origin_check(self):
        access = authorize(make_request("https://evil.example"), resolve_alice, check_origin=False)
        assert access.session_user_id == "alice"

    def test_resolver_failure_is_unauthorized(self):
        def broken(request):
            raise KeyError("session")

        with pytest.raises(UnauthorizedError, match="Session could not be resolved"):
            authorize(make_request(), broken)

    def test_numeric_user_id(self):
        assert authorize(make_request(), lambda request: 42).session_user_id == "42"


class TestAccessGuard:
    """Tests for AccessGuard.protect."""

    @pytest.mark.asyncio
    async def test_protect_sets_access_context(self):
        access_guard = AccessGuard(resolve_alice)

        @access_guard.protect
        async def handler(request, value):
            return get_access_context().session_user_id, value

        assert await handler(make_request("https://app.example.com"), 7) == ("alice", 7)
        assert get_access_context() is None

    @pytest.mark.asyncio
    async def test_protect_rejects_before_handler(self):
        access_guard = AccessGuard(resolve_alice)
        calls = []

        @access_guard.protect
        async def handler(request):
            calls.append(request)

        with pytest.raises(ForbiddenError):
            await handler(make_request("https://evil.example"))
        assert calls == []

    @pytest.mark.asyncio
    async def test_protect_with_arguments(self):
        access_guard = AccessGuard(resolve_alice)

        @access_guard.protect(check_origin=False)
        async def status(request):
            return get_access_context().origin_header

        assert await status(make_request("https://evil.example")) == "https://evil.example"

    @pytest.mark.asyncio
    async def test_context_reset_after_error(self):
        access_guard = AccessGuard(resolve_alice)

        @access_guard.protect
        async def failing(request):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await failing(make_request())
        assert get_access_context() is None

    def test_preserves_name(self):
        access_guard = AccessGuard(resolve_alice)

        @access_guard.protect
        async def my_handler(request):
            """Doc."""

        assert my_handler.__name__ == "my_handler"
        assert my_handler.__doc__ == "Doc."
