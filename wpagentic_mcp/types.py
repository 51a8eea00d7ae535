"""
Type definitions for wpagentic-mcp.

Defines enums and dataclasses used across the package for:
- Remote site credentials held per user session
- Handshake, compatibility and tool invocation results
- Connection lifecycle states and results
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# States and classifications
# =============================================================================


class ConnectionState(str, Enum):
    """
    Per-session connection state.

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED
    """
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ClientState(str, Enum):
    """
    Protocol client state machine.

    CREATED -> INITIALIZED -> (call_tool)* -> CLOSED
    """
    CREATED = "created"
    INITIALIZED = "initialized"
    CLOSED = "closed"


class ErrorKind(str, Enum):
    """Classification attached to every error leaving the bridge."""
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONNECTION = "connection_error"
    PROTOCOL = "protocol_error"
    AUTH = "auth_error"
    INCOMPATIBLE_VERSION = "incompatible_version"
    STORAGE = "storage_error"
    NOT_INITIALIZED = "not_initialized"


def redact_token(token: Optional[str], visible: int = 6) -> str:
    """Render a token for logs without exposing it."""
    if not token:
        return "<none>"
    if len(token) <= visible * 2:
        return "***"
    return f"{token[:visible]}***"


# =============================================================================
# Credential
# =============================================================================


@dataclass(frozen=True)
class RemoteCredential:
    """
    Base URL + token authorizing calls to one WordPress site for one session.

    base_url and token are both required; a credential with only one of
    them cannot be constructed. The trailing slash of base_url is dropped.

    Attributes:
        base_url: WordPress site root (http or https)
        token: Bearer token issued by the site's plugin
        refresh_token: Optional token used to mint a new access token
        write_mode_enabled: Whether write tools may be invoked
    """
    base_url: str
    token: str
    refresh_token: Optional[str] = None
    write_mode_enabled: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.base_url, str) or not self.base_url.strip():
            raise ValueError("base_url is required")
        if not isinstance(self.token, str) or not self.token:
            raise ValueError("token is required")

        base_url = self.base_url.strip()
        if not base_url.lower().startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {base_url!r}")
        if base_url.endswith("/"):
            base_url = base_url[:-1]
        object.__setattr__(self, "base_url", base_url)

    def __repr__(self) -> str:
        return (
            f"RemoteCredential(base_url={self.base_url!r}, "
            f"token={redact_token(self.token)!r}, "
            f"refresh_token={redact_token(self.refresh_token)!r}, "
            f"write_mode_enabled={self.write_mode_enabled!r})"
        )

    def with_write_mode(self, enabled: bool) -> "RemoteCredential":
        """Copy of this credential with write mode set."""
        return replace(self, write_mode_enabled=bool(enabled))

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used by the credential stores."""
        return {
            "baseUrl": self.base_url,
            "token": self.token,
            "refreshToken": self.refresh_token,
            "writeModeEnabled": self.write_mode_enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteCredential":
        """
        Rebuild a credential from to_dict() output.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        if not isinstance(data, dict):
            raise ValueError("credential payload must be an object")
        return cls(
            base_url=data.get("baseUrl"),  # type: ignore[arg-type]
            token=data.get("token"),  # type: ignore[arg-type]
            refresh_token=data.get("refreshToken") or None,
            write_mode_enabled=bool(data.get("writeModeEnabled", False)),
        )


# =============================================================================
# Handshake and tools
# =============================================================================


@dataclass
class HandshakeResult:
    """
    Normalized result of the initialize exchange.

    plugin_version is taken from serverInfo.version when present, then from
    the legacy top-level pluginVersion field, else None.
    """
    server_name: Optional[str] = None
    plugin_version: Optional[str] = None
    protocol_version: Optional[str] = None
    capabilities: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def tools_hash(self) -> Optional[str]:
        value = self.capabilities.get("toolsHash")
        return value if isinstance(value, str) and value else None

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> "HandshakeResult":
        """
        Normalize an initialize result object.

        Args:
            result: The JSON-RPC result member of the initialize response

        Returns:
            HandshakeResult with the version field resolved
        """
        server_info = result.get("serverInfo")
        if not isinstance(server_info, dict):
            server_info = {}

        capabilities = result.get("capabilities")
        if not isinstance(capabilities, dict):
            capabilities = {}

        name = server_info.get("name")
        protocol_version = result.get("protocolVersion")

        return cls(
            server_name=name if isinstance(name, str) else None,
            plugin_version=_normalize_version(
                server_info.get("version"), result.get("pluginVersion")
            ),
            protocol_version=protocol_version if isinstance(protocol_version, str) else None,
            capabilities=capabilities,
            raw=result,
        )


def _normalize_version(*candidates: Any) -> Optional[str]:
    """First non-empty version candidate, in precedence order."""
    for candidate in candidates:
        if isinstance(candidate, (int, float)) and not isinstance(candidate, bool):
            candidate = str(candidate)
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


@dataclass(frozen=True)
class CompatibilityVerdict:
    """
    Outcome of comparing a plugin version against the minimum required.

    Attributes:
        ok: True if plugin_version >= min_required
        plugin_version: Version reported by the plugin ("0.0.0" if missing)
        min_required: Minimum version this bridge accepts
        reason: Explanation when ok is False
    """
    ok: bool
    plugin_version: str
    min_required: str
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "pluginVersion": self.plugin_version,
            "minRequired": self.min_required,
            "reason": self.reason,
        }


@dataclass
class ToolDescriptor:
    """A tool advertised by the remote plugin."""
    name: str
    description: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = None
    kind: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ToolDescriptor"]:
        """Parse one entry of a tools listing, None if it has no name."""
        name = data.get("name")
        if not isinstance(name, str) or not name:
            return None
        description = data.get("description")
        input_schema = data.get("inputSchema")
        kind = data.get("kind")
        return cls(
            name=name,
            description=description if isinstance(description, str) else None,
            input_schema=input_schema if isinstance(input_schema, dict) else None,
            kind=kind if kind in ("action", "read") else None,
        )


@dataclass
class ToolResult:
    """Result payload of a single tool invocation."""
    payload: Any

    @property
    def is_error(self) -> bool:
        """True if the plugin flagged the tool result itself as an error."""
        return isinstance(self.payload, dict) and bool(self.payload.get("isError"))

    @property
    def content(self) -> List[Dict[str, Any]]:
        if isinstance(self.payload, dict):
            content = self.payload.get("content")
            if isinstance(content, list):
                return [item for item in content if isinstance(item, dict)]
        return []


# =============================================================================
# Access and lifecycle results
# =============================================================================


@dataclass(frozen=True)
class AccessContext:
    """
    Derived per inbound request once the access guard has passed.

    session_user_id is None only when the guard ran without requiring a session.
    """
    session_user_id: Optional[str]
    origin_header: Optional[str] = None


@dataclass
class ConnectResult:
    """
    Result of a successful connect.

    set_cookies holds the Set-Cookie values that mirror the new credential
    to the browser.
    """
    state: ConnectionState
    handshake: HandshakeResult
    compatibility: CompatibilityVerdict
    set_cookies: List[str] = field(default_factory=list)


@dataclass
class ConnectionMeta:
    """Liveness snapshot returned by the meta query."""
    plugin_version: Optional[str]
    tools_hash: Optional[str]
    compatibility: CompatibilityVerdict
    handshake: HandshakeResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pluginVersion": self.plugin_version,
            "toolsHash": self.tools_hash,
            "compat": self.compatibility.to_dict(),
            "init": self.handshake.raw,
        }


@dataclass
class ConnectionStatus:
    connected: bool
    site_url: Optional[str] = None
    write_mode: bool = False
    # Only filled when the status follows a credential update
    set_cookies: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "siteUrl": self.site_url,
            "writeMode": self.write_mode,
        }


@dataclass
class DisconnectResult:
    """
    Result of a local disconnect.

    set_cookies holds the Set-Cookie values the web layer must emit so the
    browser drops its copies of the credential.
    """
    state: ConnectionState = ConnectionState.DISCONNECTED
    set_cookies: List[str] = field(default_factory=list)


@dataclass
class RefreshResult:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = 3600
    set_cookies: List[str] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"RefreshResult(access_token={redact_token(self.access_token)!r}, "
            f"refresh_token={redact_token(self.refresh_token)!r}, "
            f"expires_in={self.expires_in!r})"
        )
