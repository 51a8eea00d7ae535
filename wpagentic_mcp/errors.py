"""
Exception types for wpagentic-mcp.

Every error leaving the bridge is one of these, each tagged with an
ErrorKind:
- Access errors (unauthorized session, forbidden origin)
- Remote plugin errors (connection, protocol, auth, incompatible version)
- Local credential store errors
"""

from __future__ import annotations

from typing import Any, Dict, Optional, TYPE_CHECKING

from wpagentic_mcp.types import ErrorKind

if TYPE_CHECKING:
    from wpagentic_mcp.types import CompatibilityVerdict


class BridgeError(Exception):
    """
    Base exception for all wpagentic-mcp errors.

    Attributes:
        kind: Classification of the failure
        detail: Human-readable explanation
        status_code: HTTP-equivalent status for the web layer
        retryable: Whether the caller may retry later unchanged
    """

    kind: ErrorKind = ErrorKind.PROTOCOL
    status_code: int = 500
    retryable: bool = False

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for the web layer."""
        return {
            "error": self.kind.value,
            "message": self.detail,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, detail={self.detail!r})"


# =============================================================================
# Access Errors
# =============================================================================


class UnauthorizedError(BridgeError):
    """
    Raised when no valid session exists, or the session has no stored
    credential for an operation that needs one.
    """
    kind = ErrorKind.UNAUTHORIZED
    status_code = 401

    def __init__(self, detail: str = "Not connected") -> None:
        super().__init__(detail)


class ForbiddenError(BridgeError):
    """Raised when the request origin is not allow-listed."""
    kind = ErrorKind.FORBIDDEN
    status_code = 403

    def __init__(self, detail: str = "Invalid origin", origin: Optional[str] = None) -> None:
        self.origin = origin
        super().__init__(detail)


class WriteModeDisabledError(ForbiddenError):
    """Raised when a write tool is invoked while write mode is off."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(
            f"Write mode is disabled. Enable it to run '{tool_name}'."
        )


# =============================================================================
# Remote Plugin Errors
# =============================================================================


class RemoteConnectionError(BridgeError):
    """
    Raised when the remote plugin cannot be reached.

    This includes:
    - DNS and TLS failures
    - Connection refused / reset
    - Request timeouts
    - 5xx responses from the site
    """
    kind = ErrorKind.CONNECTION
    status_code = 502
    retryable = True


class ProtocolError(BridgeError):
    """
    Raised when the plugin responded but the exchange is unusable.

    JSON-RPC error objects returned by the plugin are carried in
    rpc_code / rpc_data.
    """
    kind = ErrorKind.PROTOCOL
    status_code = 502

    def __init__(
        self,
        detail: str,
        rpc_code: Optional[int] = None,
        rpc_data: Any = None,
        http_status: Optional[int] = None,
    ) -> None:
        self.rpc_code = rpc_code
        self.rpc_data = rpc_data
        self.http_status = http_status
        super().__init__(detail)


class InvalidToolCallError(ProtocolError, ValueError):
    """
    Raised before any round trip when a tool call is malformed.

    The request is the caller's fault, so it maps to 400 rather than 502.
    """
    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail, rpc_code=-32602)


class RemoteAuthError(BridgeError):
    """
    Raised when the plugin rejects the stored token.

    The local credential is stale; the caller must reconnect.
    """
    kind = ErrorKind.AUTH
    status_code = 401

    def __init__(self, detail: str = "Reconnect required", http_status: Optional[int] = None) -> None:
        self.http_status = http_status
        super().__init__(detail)


class IncompatibleVersionError(BridgeError):
    """
    Raised when the handshake succeeded but the plugin is too old.

    Example:
        try:
            await manager.connect(session_id, credential)
        except IncompatibleVersionError as e:
            print(f"Upgrade plugin {e.plugin_version} to >= {e.min_required}")
    """
    kind = ErrorKind.INCOMPATIBLE_VERSION
    status_code = 426

    def __init__(self, verdict: "CompatibilityVerdict") -> None:
        self.verdict = verdict
        self.plugin_version = verdict.plugin_version
        self.min_required = verdict.min_required
        super().__init__(
            verdict.reason
            or f"Plugin {verdict.plugin_version} < required {verdict.min_required}"
        )

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["pluginVersion"] = self.plugin_version
        body["minRequired"] = self.min_required
        return body


# =============================================================================
# Local Errors
# =============================================================================


class StorageError(BridgeError):
    """Raised when the credential store cannot identify the session or persist."""
    kind = ErrorKind.STORAGE
    status_code = 500


class NotInitializedError(BridgeError, RuntimeError):
    """
    Raised when a tool is invoked on a protocol client before initialize().

    This is a programming error; no network I/O is attempted.
    """
    kind = ErrorKind.NOT_INITIALIZED
    status_code = 500
