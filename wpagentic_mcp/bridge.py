"""
Request-level facade over the guard and the connection manager.

Each entry point takes the InboundRequest first, authorizes it, then
hands the resolved session id to the ConnectionManager. Mutating
operations check the Origin header; reads only require a session.

Usage:
    from wpagentic_mcp import BridgeSettings, WordPressBridge

    bridge = WordPressBridge.from_settings(
        BridgeSettings.from_env(),
        session_resolver=lambda request: my_auth.user_id_for(request),
    )

    result = await bridge.call_tool(request, "wp_get_posts", {"per_page": 5})
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from wpagentic_mcp.config import BridgeSettings
from wpagentic_mcp.crypto import CredentialSealer
from wpagentic_mcp.errors import StorageError, UnauthorizedError
from wpagentic_mcp.guard import AccessGuard, GuardConfig, InboundRequest, SessionResolver
from wpagentic_mcp.lifecycle import ConnectionManager
from wpagentic_mcp.store import (
    CredentialStore,
    FileCredentialStore,
    MemoryCredentialStore,
    SealedCredentialStore,
)
from wpagentic_mcp.types import (
    ConnectionMeta,
    ConnectionStatus,
    ConnectResult,
    DisconnectResult,
    RefreshResult,
    RemoteCredential,
    ToolDescriptor,
    ToolResult,
)


def build_store(settings: BridgeSettings, persistent: bool = True) -> CredentialStore:
    """
    Pick a credential store for the given settings.

    Without a session secret only the in-memory store is available.
    With one, credentials are sealed and written to files (persistent)
    or kept sealed in a process-local mapping.

    Raises:
        StorageError: If persistence was requested without a secret
    """
    if not settings.session_secret:
        if persistent:
            raise StorageError("A session secret is required for persistent credential storage")
        return MemoryCredentialStore()

    sealer = CredentialSealer(settings.session_secret)
    if persistent:
        return FileCredentialStore(sealer, directory=settings.store_dir)
    return SealedCredentialStore(sealer)


class WordPressBridge:
    """
    Guarded entry points for one application.

    Attributes:
        guard: Origin and session guard
        manager: Connection lifecycle manager
        app_origin: Origin sent to the plugin on token refresh
    """

    def __init__(
        self,
        guard: AccessGuard,
        manager: ConnectionManager,
        app_origin: Optional[str] = None,
    ) -> None:
        self.guard = guard
        self.manager = manager
        self.app_origin = app_origin or guard.config.app_origin or ""

    @classmethod
    def from_settings(
        cls,
        settings: BridgeSettings,
        session_resolver: SessionResolver,
        store: Optional[CredentialStore] = None,
    ) -> "WordPressBridge":
        """Wire a guard, a store and a manager from settings."""
        manager = ConnectionManager(
            store if store is not None else build_store(settings),
            timeout=settings.request_timeout,
            secure_cookies=settings.secure_cookies,
        )
        guard = AccessGuard(session_resolver, config=GuardConfig.from_settings(settings))
        return cls(guard, manager, app_origin=settings.app_origin)

    def _session(self, request: InboundRequest, check_origin: bool = True) -> str:
        access = self.guard.authorize(request, require_session=True, check_origin=check_origin)
        if access.session_user_id is None:
            raise UnauthorizedError("Unauthorized")
        return access.session_user_id

    # Mutating operations

    async def connect(self, request: InboundRequest, credential: RemoteCredential) -> ConnectResult:
        session_id = self._session(request)
        return await self.manager.connect(session_id, credential)

    async def disconnect(self, request: InboundRequest) -> DisconnectResult:
        session_id = self._session(request)
        return await self.manager.disconnect(session_id)

    async def call_tool(
        self,
        request: InboundRequest,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> ToolResult:
        session_id = self._session(request)
        return await self.manager.call_tool(session_id, name, arguments)

    async def set_write_mode(self, request: InboundRequest, enabled: bool) -> ConnectionStatus:
        session_id = self._session(request)
        return await self.manager.set_write_mode(session_id, enabled)

    async def refresh(self, request: InboundRequest) -> RefreshResult:
        session_id = self._session(request)
        return await self.manager.refresh(session_id, app_origin=self.app_origin)

    # Reads

    async def meta(self, request: InboundRequest) -> ConnectionMeta:
        session_id = self._session(request, check_origin=False)
        return await self.manager.meta(session_id)

    async def status(self, request: InboundRequest) -> ConnectionStatus:
        session_id = self._session(request, check_origin=False)
        return self.manager.status(session_id)

    async def list_tools(self, request: InboundRequest) -> List[ToolDescriptor]:
        session_id = self._session(request, check_origin=False)
        return await self.manager.list_tools(session_id)
