"""
wpagentic-mcp: Session-scoped bridge to the WordPress MCP plugin.

This package provides:
- A JSON-RPC client for the plugin's streamable MCP endpoint
- Version gating of the remote plugin
- Per-session credential storage (memory, sealed mapping, sealed files)
- Connect / meta / disconnect / tool call lifecycle
- An origin and session guard for control requests

Installation:
    pip install wpagentic-mcp

Quickstart:
    from wpagentic_mcp import (
        BridgeSettings,
        InboundRequest,
        RemoteCredential,
        WordPressBridge,
    )

    bridge = WordPressBridge.from_settings(
        BridgeSettings.from_env(),
        session_resolver=lambda request: my_auth.user_id_for(request),
    )

    request = InboundRequest(url="https://app.example.com/api/wp/connect",
                             headers={"Origin": "https://app.example.com"})
    await bridge.connect(request, RemoteCredential(
        base_url="https://blog.example.com",
        token="eyJhbGc...",
    ))
    result = await bridge.call_tool(request, "wp_get_posts", {"per_page": 5})
"""

from wpagentic_mcp.types import (
    AccessContext,
    ClientState,
    CompatibilityVerdict,
    ConnectionMeta,
    ConnectionState,
    ConnectionStatus,
    ConnectResult,
    DisconnectResult,
    ErrorKind,
    HandshakeResult,
    RefreshResult,
    RemoteCredential,
    ToolDescriptor,
    ToolResult,
)
from wpagentic_mcp.errors import (
    BridgeError,
    ForbiddenError,
    IncompatibleVersionError,
    InvalidToolCallError,
    NotInitializedError,
    ProtocolError,
    RemoteAuthError,
    RemoteConnectionError,
    StorageError,
    UnauthorizedError,
    WriteModeDisabledError,
)
from wpagentic_mcp._core import (
    BRIDGE_VERSION,
    MIN_PLUGIN_VERSION,
    PROTOCOL_VERSION,
    PluginHealth,
    ProtocolClient,
    check_compatibility,
    compare_versions,
    exchange_refresh_token,
    probe_plugin_health,
)
from wpagentic_mcp.config import BridgeSettings
from wpagentic_mcp.crypto import CredentialSealer
from wpagentic_mcp.store import (
    CredentialStore,
    FileCredentialStore,
    MemoryCredentialStore,
    SealedCredentialStore,
)
from wpagentic_mcp.cookies import clear_credential_cookies, credential_cookies
from wpagentic_mcp.guard import (
    AccessGuard,
    GuardConfig,
    InboundRequest,
    authorize,
    get_access_context,
)
from wpagentic_mcp.lifecycle import ConnectionManager, is_write_tool
from wpagentic_mcp.bridge import WordPressBridge, build_store

__version__ = BRIDGE_VERSION

__all__ = [
    # Version
    "__version__",
    "BRIDGE_VERSION",
    "MIN_PLUGIN_VERSION",
    "PROTOCOL_VERSION",
    # Types
    "AccessContext",
    "ClientState",
    "CompatibilityVerdict",
    "ConnectionMeta",
    "ConnectionState",
    "ConnectionStatus",
    "ConnectResult",
    "DisconnectResult",
    "ErrorKind",
    "HandshakeResult",
    "RefreshResult",
    "RemoteCredential",
    "ToolDescriptor",
    "ToolResult",
    # Errors
    "BridgeError",
    "ForbiddenError",
    "IncompatibleVersionError",
    "InvalidToolCallError",
    "NotInitializedError",
    "ProtocolError",
    "RemoteAuthError",
    "RemoteConnectionError",
    "StorageError",
    "UnauthorizedError",
    "WriteModeDisabledError",
    # Remote plugin
    "PluginHealth",
    "ProtocolClient",
    "check_compatibility",
    "compare_versions",
    "exchange_refresh_token",
    "probe_plugin_health",
    # Configuration
    "BridgeSettings",
    # Credential storage
    "CredentialSealer",
    "CredentialStore",
    "FileCredentialStore",
    "MemoryCredentialStore",
    "SealedCredentialStore",
    "clear_credential_cookies",
    "credential_cookies",
    # Guard
    "AccessGuard",
    "GuardConfig",
    "InboundRequest",
    "authorize",
    "get_access_context",
    # Lifecycle
    "ConnectionManager",
    "WordPressBridge",
    "build_store",
    "is_write_tool",
]
