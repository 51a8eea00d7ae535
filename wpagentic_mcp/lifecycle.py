"""
Connection lifecycle for a user session's WordPress site.

Handles:
- connect: handshake -> compatibility check -> persist credential
- meta: fresh handshake as a liveness probe
- status / state: local, network-free reads
- disconnect: local credential revocation
- call_tool / list_tools: operational calls over a fresh client
- set_write_mode / refresh: credential updates

A credential is written only after a successful handshake with a
compatible plugin. A credential the plugin rejects (401/403) is cleared.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from wpagentic_mcp._core.client import (
    DEFAULT_TIMEOUT,
    ProtocolClient,
    exchange_refresh_token,
    validate_tool_call,
)
from wpagentic_mcp._core.health import check_version_compatibility
from wpagentic_mcp._core.version import MIN_PLUGIN_VERSION, check_compatibility
from wpagentic_mcp.cookies import clear_credential_cookies, credential_cookies
from wpagentic_mcp.errors import (
    RemoteAuthError,
    UnauthorizedError,
    WriteModeDisabledError,
)
from wpagentic_mcp.store import CredentialStore
from wpagentic_mcp.types import (
    ConnectionMeta,
    ConnectionState,
    ConnectionStatus,
    ConnectResult,
    DisconnectResult,
    RefreshResult,
    RemoteCredential,
    ToolDescriptor,
    ToolResult,
)

logger = logging.getLogger(__name__)

# Substrings marking a tool as a write operation
WRITE_OPERATIONS = ("create", "update", "delete", "edit", "publish", "trash")

ClientFactory = Callable[[RemoteCredential, float], ProtocolClient]


def is_write_tool(name: str) -> bool:
    """Check whether a tool name denotes a write operation."""
    lowered = name.lower()
    return any(op in lowered for op in WRITE_OPERATIONS)


class ConnectionManager:
    """
    Orchestrates connect / meta / disconnect / tool calls for sessions.

    Every remote operation builds its own ProtocolClient; nothing is
    pooled across requests or sessions.

    Attributes:
        store: Credential store shared by all sessions
        timeout: Seconds per remote round trip
        min_plugin_version: Oldest accepted plugin version
        secure_cookies: Secure attribute on Set-Cookie directives
    """

    def __init__(
        self,
        store: CredentialStore,
        timeout: float = DEFAULT_TIMEOUT,
        client_factory: Optional[ClientFactory] = None,
        min_plugin_version: str = MIN_PLUGIN_VERSION,
        secure_cookies: bool = True,
    ) -> None:
        self.store = store
        self.timeout = timeout
        self.min_plugin_version = min_plugin_version
        self.secure_cookies = secure_cookies
        self._client_factory: ClientFactory = client_factory or ProtocolClient
        # In-flight connects per session; overlapping connects each hold a count
        self._connecting: Counter[str] = Counter()

    def _new_client(self, credential: RemoteCredential) -> ProtocolClient:
        return self._client_factory(credential, self.timeout)

    def _require_credential(self, session_id: str) -> RemoteCredential:
        credential = self.store.load(session_id)
        if credential is None:
            raise UnauthorizedError("WordPress not connected")
        return credential

    def _drop_stale_credential(self, session_id: str, error: RemoteAuthError) -> None:
        logger.info(f"Clearing credential rejected by the plugin: {error.detail}")
        self.store.clear(session_id)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def state(self, session_id: str) -> ConnectionState:
        """Current connection state of a session in this process."""
        if self._connecting[session_id] > 0:
            return ConnectionState.CONNECTING
        if self.store.load(session_id) is not None:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    def status(self, session_id: str) -> ConnectionStatus:
        """Local connection status; performs no network I/O."""
        credential = self.store.load(session_id)
        if credential is None:
            return ConnectionStatus(connected=False)
        return ConnectionStatus(
            connected=True,
            site_url=credential.base_url,
            write_mode=credential.write_mode_enabled,
        )

    # -------------------------------------------------------------------------
    # Connect / meta / disconnect
    # -------------------------------------------------------------------------

    async def connect(self, session_id: str, credential: RemoteCredential) -> ConnectResult:
        """
        Connect a session to a site.

        Args:
            session_id: Authenticated session identifier
            credential: Candidate credential from the linking flow

        Returns:
            ConnectResult in CONNECTED state

        Raises:
            RemoteConnectionError / RemoteAuthError / ProtocolError: Handshake failed
            IncompatibleVersionError: Plugin older than the minimum
            StorageError: Credential could not be persisted
        """
        client = self._new_client(credential)
        self._connecting[session_id] += 1
        try:
            handshake = await client.initialize()
            verdict = check_version_compatibility(handshake, self.min_plugin_version)
            self.store.save(session_id, credential)
        finally:
            await client.close()
            self._connecting[session_id] -= 1
            if self._connecting[session_id] <= 0:
                del self._connecting[session_id]

        logger.info(
            f"Connected session to {credential.base_url} "
            f"(plugin {verdict.plugin_version})"
        )
        return ConnectResult(
            state=ConnectionState.CONNECTED,
            handshake=handshake,
            compatibility=verdict,
            set_cookies=credential_cookies(credential, secure=self.secure_cookies),
        )

    async def meta(self, session_id: str) -> ConnectionMeta:
        """
        Probe the connected site with a fresh handshake.

        Raises:
            UnauthorizedError: If the session is not connected
            RemoteAuthError: If the plugin rejects the token (credential cleared)
            RemoteConnectionError / ProtocolError
        """
        credential = self._require_credential(session_id)
        client = self._new_client(credential)
        try:
            handshake = await client.initialize()
        except RemoteAuthError as e:
            self._drop_stale_credential(session_id, e)
            raise
        finally:
            await client.close()

        return ConnectionMeta(
            plugin_version=handshake.plugin_version,
            tools_hash=handshake.tools_hash,
            compatibility=check_compatibility(handshake.plugin_version, self.min_plugin_version),
            handshake=handshake,
        )

    async def disconnect(self, session_id: str) -> DisconnectResult:
        """
        Revoke the session's credential locally.

        Never contacts the site and succeeds whether or not a credential
        was stored.

        Returns:
            DisconnectResult with cookie-clearing directives
        """
        self.store.clear(session_id)
        logger.info("Disconnected session")
        return DisconnectResult(
            state=ConnectionState.DISCONNECTED,
            set_cookies=clear_credential_cookies(secure=self.secure_cookies),
        )

    # -------------------------------------------------------------------------
    # Operational calls
    # -------------------------------------------------------------------------

    async def call_tool(
        self,
        session_id: str,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> ToolResult:
        """
        Initialize a fresh client and invoke one tool.

        Raises:
            InvalidToolCallError: Malformed name or arguments (no I/O)
            UnauthorizedError: If the session is not connected (no I/O)
            WriteModeDisabledError: Write tool with write mode off (no I/O)
            RemoteAuthError: Token rejected; the credential is cleared
            RemoteConnectionError / ProtocolError
        """
        validate_tool_call(name, arguments)
        credential = self._require_credential(session_id)
        if is_write_tool(name) and not credential.write_mode_enabled:
            raise WriteModeDisabledError(name)

        client = self._new_client(credential)
        try:
            await client.initialize()
            return await client.call_tool(name, arguments)
        except RemoteAuthError as e:
            self._drop_stale_credential(session_id, e)
            raise
        finally:
            await client.close()

    async def list_tools(self, session_id: str) -> List[ToolDescriptor]:
        """Initialize a fresh client and list the plugin's tools."""
        credential = self._require_credential(session_id)
        client = self._new_client(credential)
        try:
            await client.initialize()
            return await client.list_tools()
        except RemoteAuthError as e:
            self._drop_stale_credential(session_id, e)
            raise
        finally:
            await client.close()

    # -------------------------------------------------------------------------
    # Credential updates
    # -------------------------------------------------------------------------

    async def set_write_mode(self, session_id: str, enabled: bool) -> ConnectionStatus:
        """
        Enable or disable write tools for the session.

        Raises:
            UnauthorizedError: If the session is not connected
        """
        credential = self._require_credential(session_id).with_write_mode(enabled)
        self.store.save(session_id, credential)
        logger.info(f"Write mode {'enabled' if enabled else 'disabled'} for {credential.base_url}")
        return ConnectionStatus(
            connected=True,
            site_url=credential.base_url,
            write_mode=credential.write_mode_enabled,
            set_cookies=credential_cookies(credential, secure=self.secure_cookies),
        )

    async def refresh(self, session_id: str, app_origin: str = "") -> RefreshResult:
        """
        Exchange the stored refresh token for a new access token.

        Args:
            session_id: Authenticated session identifier
            app_origin: This application's origin, sent to the plugin

        Raises:
            UnauthorizedError: No credential or no refresh token (no I/O)
            RemoteAuthError: Refresh token rejected; the credential is cleared
            RemoteConnectionError / ProtocolError
        """
        credential = self._require_credential(session_id)
        if not credential.refresh_token:
            raise UnauthorizedError("Missing WordPress refresh context")

        try:
            result = await exchange_refresh_token(
                credential.base_url,
                credential.refresh_token,
                origin=app_origin,
                timeout=self.timeout,
            )
        except RemoteAuthError as e:
            self._drop_stale_credential(session_id, e)
            raise

        refreshed = RemoteCredential(
            base_url=credential.base_url,
            token=result.access_token,
            refresh_token=result.refresh_token or credential.refresh_token,
            write_mode_enabled=credential.write_mode_enabled,
        )
        self.store.save(session_id, refreshed)
        logger.info(f"Refreshed access token for {credential.base_url}")
        return replace(
            result,
            set_cookies=credential_cookies(
                refreshed, secure=self.secure_cookies, token_max_age=result.expires_in
            ),
        )
