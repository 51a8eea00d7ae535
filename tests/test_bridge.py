"""Tests for wpagentic_mcp.bridge module."""

from unittest.mock import MagicMock

import pytest

from wpagentic_mcp.bridge import WordPressBridge, build_store
from wpagentic_mcp.config import BridgeSettings
from wpagentic_mcp.errors import ForbiddenError, StorageError, UnauthorizedError
from wpagentic_mcp.guard import AccessGuard, GuardConfig, InboundRequest
from wpagentic_mcp.lifecycle import ConnectionManager
from wpagentic_mcp.store import (
    CredentialStore,
    FileCredentialStore,
    MemoryCredentialStore,
    SealedCredentialStore,
)
from wpagentic_mcp.types import ConnectionState

APP_URL = "https://app.example.com/api/wp"
SESSIONS = {"alice-cookie": "alice", "bob-cookie": "bob"}


def resolve_session(request):
    return SESSIONS.get(request.header("Cookie") or "")


def make_request(origin="https://app.example.com", cookie="alice-cookie"):
    headers = {}
    if origin is not None:
        headers["Origin"] = origin
    if cookie is not None:
        headers["Cookie"] = cookie
    return InboundRequest(url=APP_URL, headers=headers)


@pytest.fixture
def spy_store():
    """Memory store whose calls are recorded."""
    return MagicMock(spec=CredentialStore, wraps=MemoryCredentialStore())


@pytest.fixture
def bridge(spy_store, client_factory):
    guard = AccessGuard(resolve_session, config=GuardConfig(app_origin="https://app.example.com"))
    manager = ConnectionManager(spy_store, client_factory=client_factory)
    return WordPressBridge(guard, manager)


def assert_store_untouched(store):
    store.load.assert_not_called()
    store.save.assert_not_called()
    store.clear.assert_not_called()


class TestGuardPrecedence:
    """Rejected requests never reach the credential store."""

    @pytest.mark.asyncio
    async def test_foreign_origin_connect(self, bridge, spy_store, client_factory, credential):
        with pytest.raises(ForbiddenError):
            await bridge.connect(make_request(origin="https://evil.example"), credential)
        assert_store_untouched(spy_store)
        assert client_factory.clients == []

    @pytest.mark.asyncio
    async def test_foreign_origin_mutations(self, bridge, spy_store):
        request = make_request(origin="https://evil.example")
        with pytest.raises(ForbiddenError):
            await bridge.disconnect(request)
        with pytest.raises(ForbiddenError):
            await bridge.call_tool(request, "wp_get_posts")
        with pytest.raises(ForbiddenError):
            await bridge.set_write_mode(request, True)
        with pytest.raises(ForbiddenError):
            await bridge.refresh(request)
        assert_store_untouched(spy_store)

    @pytest.mark.asyncio
    async def test_no_session(self, bridge, spy_store, credential):
        with pytest.raises(UnauthorizedError):
            await bridge.connect(make_request(cookie=None), credential)
        with pytest.raises(UnauthorizedError):
            await bridge.status(make_request(cookie="unknown"))
        assert_store_untouched(spy_store)

    @pytest.mark.asyncio
    async def test_reads_skip_origin_check(self, bridge):
        status = await bridge.status(make_request(origin="https://evil.example"))
        assert not status.connected


class TestBridgeFlow:
    """End-to-end flow through the facade."""

    @pytest.mark.asyncio
    async def test_connect_call_disconnect(self, bridge, client_factory, credential):
        request = make_request()

        result = await bridge.connect(request, credential)
        assert result.state == ConnectionState.CONNECTED

        status = await bridge.status(request)
        assert status.connected
        assert status.site_url == credential.base_url

        tool_result = await bridge.call_tool(request, "wp_get_posts", {"per_page": 1})
        assert not tool_result.is_error

        tools = await bridge.list_tools(request)
        assert tools[0].name == "wp_get_posts"

        meta = await bridge.meta(request)
        assert meta.plugin_version == "0.2.0"

        disconnected = await bridge.disconnect(request)
        assert disconnected.state == ConnectionState.DISCONNECTED
        assert not (await bridge.status(request)).connected

    @pytest.mark.asyncio
    async def test_sessions_isolated(self, bridge, credential):
        await bridge.connect(make_request(cookie="alice-cookie"), credential)
        status = await bridge.status(make_request(cookie="bob-cookie"))
        assert not status.connected

    @pytest.mark.asyncio
    async def test_missing_origin_allowed_by_default(self, bridge, credential):
        result = await bridge.connect(make_request(origin=None), credential)
        assert result.state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_write_mode_toggle(self, bridge, credential):
        request = make_request()
        await bridge.connect(request, credential)
        status = await bridge.set_write_mode(request, True)
        assert status.write_mode


class TestFromSettings:
    """Tests for WordPressBridge.from_settings and build_store."""

    def test_build_store_requires_secret_for_persistence(self):
        with pytest.raises(StorageError):
            build_store(BridgeSettings())

    def test_build_store_memory_without_secret(self):
        assert isinstance(build_store(BridgeSettings(), persistent=False), MemoryCredentialStore)

    def test_build_store_sealed(self, session_secret):
        store = build_store(BridgeSettings(session_secret=session_secret), persistent=False)
        assert isinstance(store, SealedCredentialStore)

    def test_build_store_file(self, session_secret, tmp_path):
        store = build_store(BridgeSettings(session_secret=session_secret, store_dir=str(tmp_path)))
        assert isinstance(store, FileCredentialStore)
        assert store.directory == tmp_path

    def test_from_settings(self, session_secret, tmp_path):
        settings = BridgeSettings(
            allowed_origins=["https://admin.example.com"],
            app_origin="https://app.example.com",
            session_secret=session_secret,
            request_timeout=4.0,
            store_dir=str(tmp_path),
            secure_cookies=False,
        )
        bridge = WordPressBridge.from_settings(settings, resolve_session)

        assert bridge.app_origin == "https://app.example.com"
        assert bridge.manager.timeout == 4.0
        assert bridge.manager.secure_cookies is False
        assert bridge.guard.config.allowed_origins == ["https://admin.example.com"]
        assert isinstance(bridge.manager.store, FileCredentialStore)

    def test_from_settings_with_store(self):
        store = MemoryCredentialStore()
        bridge = WordPressBridge.from_settings(BridgeSettings(), resolve_session, store=store)
        assert bridge.manager.store is store
