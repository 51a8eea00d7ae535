"""
JSON-RPC client for the WordPress MCP plugin.

One ProtocolClient speaks to exactly one site with exactly one credential
and is built fresh for every request cycle; instances are never shared
across sessions.

Usage:
    async with ProtocolClient(credential) as client:
        # initialize() already ran
        result = await client.call_tool("wp_posts_search", {"search": "hello"})

    # Manual lifecycle
    client = ProtocolClient(credential, timeout=10.0)
    handshake = await client.initialize()
    tools = await client.list_tools()
    await client.close()
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from functools import partial
from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests

from wpagentic_mcp._core.version import BRIDGE_VERSION, CLIENT_NAME, PROTOCOL_VERSION
from wpagentic_mcp.errors import (
    InvalidToolCallError,
    NotInitializedError,
    ProtocolError,
    RemoteAuthError,
    RemoteConnectionError,
)
from wpagentic_mcp.types import (
    ClientState,
    HandshakeResult,
    RemoteCredential,
    RefreshResult,
    ToolDescriptor,
    ToolResult,
    redact_token,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MCP_ENDPOINT_PATH = "/wp-json/wp/v2/wpmcp/streamable"
TOKEN_ENDPOINT_PATH = "/wp-json/wpcursor/v1/auth/token"

DEFAULT_TIMEOUT = 15.0
DEFAULT_TOKEN_TTL = 3600

# Capabilities announced by the bridge in initialize
CLIENT_CAPABILITIES: Dict[str, Any] = {
    "tools": {"call": {}},
    "resources": {"read": {}},
    "prompts": {"get": {}},
}


def validate_tool_call(name: Any, arguments: Any) -> None:
    """
    Check a tool call's shape before anything touches the network.

    Raises:
        InvalidToolCallError: If name is not a non-empty string or arguments
            is neither None nor an object
    """
    if not isinstance(name, str) or not name:
        raise InvalidToolCallError("tool name is required")
    if arguments is not None and not isinstance(arguments, dict):
        raise InvalidToolCallError("tool arguments must be an object")


async def run_with_deadline(func: Callable[[], T], timeout: float, url: str) -> T:
    """
    Run a blocking round trip in the default executor under an overall deadline.

    The requests timeout only bounds the connect and each socket read; a
    response that keeps trickling bytes is cut off here instead.

    Raises:
        RemoteConnectionError: If the deadline passes
    """
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(loop.run_in_executor(None, func), timeout)
    except asyncio.TimeoutError as e:
        raise RemoteConnectionError(f"Timed out after {timeout}s contacting {url}") from e


def _post_json(
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float,
) -> requests.Response:
    """
    POST a JSON body, converting transport failures to RemoteConnectionError.
    """
    try:
        return requests.post(url, json=payload, headers=headers, timeout=timeout)
    except requests.Timeout as e:
        raise RemoteConnectionError(f"Timed out after {timeout}s contacting {url}") from e
    except requests.ConnectionError as e:
        raise RemoteConnectionError(f"Unable to reach {url}: {e}") from e
    except requests.RequestException as e:
        raise RemoteConnectionError(f"Request to {url} failed: {e}") from e


def _decode_event_stream(text: str) -> Any:
    """
    Decode a text/event-stream body.

    Returns the last data event that parses as a JSON object.
    """
    message = None
    data_lines: List[str] = []

    def flush() -> None:
        nonlocal message
        if not data_lines:
            return
        chunk = "\n".join(data_lines)
        data_lines.clear()
        try:
            decoded = json.loads(chunk)
        except ValueError:
            return
        if isinstance(decoded, dict):
            message = decoded

    for line in text.splitlines():
        if not line.strip():
            flush()
        elif line.startswith("data:"):
            data_lines.append(line[5:].lstrip())
    flush()

    if message is None:
        raise ProtocolError("Event stream response carried no JSON-RPC message")
    return message


def _decode_body(response: requests.Response) -> Any:
    """Decode a JSON or SSE-framed response body."""
    content_type = response.headers.get("Content-Type", "")
    if "text/event-stream" in content_type:
        return _decode_event_stream(response.text)

    try:
        return response.json()
    except ValueError as e:
        raise ProtocolError(
            f"Plugin returned a non-JSON body (status {response.status_code})",
            http_status=response.status_code,
        ) from e


def _raise_for_status(response: requests.Response, url: str) -> None:
    """Classify a non-2xx response."""
    status = response.status_code
    if 200 <= status < 300:
        return

    body = (response.text or "")[:500]
    suffix = f" - {body}" if body else ""

    if status in (401, 403):
        raise RemoteAuthError(
            f"Plugin rejected the stored token ({status}); reconnect required",
            http_status=status,
        )
    if status >= 500:
        raise RemoteConnectionError(f"Plugin at {url} failed with status {status}{suffix}")
    raise ProtocolError(
        f"MCP request failed: {status} {response.reason or ''}{suffix}".strip(),
        http_status=status,
    )


class ProtocolClient:
    """
    Async client for the plugin's streamable JSON-RPC endpoint.

    State machine: CREATED -> INITIALIZED -> (call_tool | list_tools)* -> CLOSED.
    Tool calls before a successful initialize() raise NotInitializedError
    without any network I/O. No call is retried.

    Attributes:
        credential: Site credential this client is bound to
        timeout: Seconds allowed for each round trip
    """

    def __init__(
        self,
        credential: RemoteCredential,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Bind the client to one credential (no I/O yet)."""
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.credential = credential
        self.timeout = timeout
        self._state = ClientState.CREATED
        self._handshake: Optional[HandshakeResult] = None

    @property
    def endpoint(self) -> str:
        return f"{self.credential.base_url}{MCP_ENDPOINT_PATH}"

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state == ClientState.INITIALIZED

    @property
    def handshake(self) -> Optional[HandshakeResult]:
        """Result of the last successful initialize(), if any."""
        return self._handshake

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            "Authorization": f"Bearer {self.credential.token}",
        }

    def _request_sync(self, method: str, params: Optional[Dict[str, Any]]) -> Any:
        """Sync implementation of a single JSON-RPC round trip."""
        body: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
        }
        # Only include params if they are provided
        if params is not None:
            body["params"] = params

        logger.debug(
            f"MCP request {method} -> {self.endpoint} "
            f"(token={redact_token(self.credential.token)})"
        )
        response = _post_json(self.endpoint, body, self._headers(), self.timeout)
        logger.debug(f"MCP response {method}: status={response.status_code}")

        _raise_for_status(response, self.endpoint)
        data = _decode_body(response)

        if not isinstance(data, dict):
            raise ProtocolError(f"Unexpected JSON-RPC envelope for {method}: {type(data).__name__}")

        error = data.get("error")
        if error is not None:
            if isinstance(error, dict):
                code = error.get("code")
                raise ProtocolError(
                    f"MCP error: {error.get('message') or 'MCP error occurred'}",
                    rpc_code=code if isinstance(code, int) else None,
                    rpc_data=error.get("data"),
                )
            raise ProtocolError(f"MCP error: {error}")

        if "result" not in data:
            raise ProtocolError(f"JSON-RPC response for {method} has no result")
        return data["result"]

    async def _request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Run one round trip in the default executor, bounded by self.timeout."""
        return await run_with_deadline(
            partial(self._request_sync, method, params), self.timeout, self.endpoint
        )

    def _require_initialized(self, operation: str) -> None:
        if self._state == ClientState.CLOSED:
            raise NotInitializedError(f"Cannot {operation}: client is closed")
        if self._state != ClientState.INITIALIZED:
            raise NotInitializedError(
                f"Cannot {operation} before initialize(). Call initialize() first."
            )

    async def initialize(self) -> HandshakeResult:
        """
        Perform the initialize handshake.

        Returns:
            HandshakeResult with serverInfo.version / pluginVersion normalized

        Raises:
            RemoteConnectionError: Network failure or timeout
            RemoteAuthError: Token rejected (401/403)
            ProtocolError: Malformed or unexpected response
        """
        if self._state == ClientState.CLOSED:
            raise NotInitializedError("Cannot initialize: client is closed")

        result = await self._request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": CLIENT_CAPABILITIES,
                "clientInfo": {"name": CLIENT_NAME, "version": BRIDGE_VERSION},
            },
        )
        if not isinstance(result, dict):
            raise ProtocolError("initialize result must be an object")

        self._handshake = HandshakeResult.from_result(result)
        self._state = ClientState.INITIALIZED
        logger.debug(
            f"Initialized with {self.credential.base_url}: "
            f"plugin={self._handshake.plugin_version}"
        )
        return self._handshake

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> ToolResult:
        """
        Invoke a named tool in a single round trip.

        Args:
            name: Tool name
            arguments: Tool arguments (default: {})

        Returns:
            ToolResult wrapping the JSON-RPC result

        Raises:
            NotInitializedError: If initialize() has not succeeded
            InvalidToolCallError: If the name or arguments are malformed
            RemoteConnectionError / RemoteAuthError / ProtocolError
        """
        self._require_initialized(f"call tool '{name}'")
        validate_tool_call(name, arguments)

        result = await self._request(
            "tools/call", {"name": name, "arguments": arguments or {}}
        )
        return ToolResult(payload=result)

    async def list_tools(self) -> List[ToolDescriptor]:
        """
        List every tool the plugin exposes.

        Raises:
            NotInitializedError: If initialize() has not succeeded
            ProtocolError: If the listing is not {"tools": [...]}
        """
        self._require_initialized("list tools")

        result = await self._request("tools/list/all")
        tools = result.get("tools") if isinstance(result, dict) else None
        if not isinstance(tools, list):
            raise ProtocolError("tools listing must contain a 'tools' array")

        descriptors = []
        for entry in tools:
            if isinstance(entry, dict):
                descriptor = ToolDescriptor.from_dict(entry)
                if descriptor is not None:
                    descriptors.append(descriptor)
        return descriptors

    async def close(self) -> None:
        """Mark the client closed; further calls raise NotInitializedError."""
        self._state = ClientState.CLOSED
        self._handshake = None

    async def __aenter__(self) -> "ProtocolClient":
        """Async context manager entry; runs initialize()."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


# =============================================================================
# Token refresh (via HTTP)
# =============================================================================


def _exchange_refresh_token_sync(
    base_url: str,
    refresh_token: str,
    origin: str,
    timeout: float,
) -> RefreshResult:
    """Sync implementation of exchange_refresh_token."""
    url = f"{base_url.rstrip('/')}{TOKEN_ENDPOINT_PATH}"
    payload = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "origin": origin,
    }

    response = _post_json(url, payload, {"Content-Type": "application/json"}, timeout)

    if not 200 <= response.status_code < 300:
        raise RemoteAuthError(
            f"Refresh failed: {response.status_code} {response.reason or ''}".strip(),
            http_status=response.status_code,
        )

    try:
        data = response.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    access = data.get("access_token")
    if not isinstance(access, str) or not access:
        raise ProtocolError("Refresh succeeded but no access token returned")

    rotated = data.get("refresh_token")
    expires_in = data.get("expires_in")
    if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)) or expires_in <= 0:
        expires_in = DEFAULT_TOKEN_TTL

    return RefreshResult(
        access_token=access,
        refresh_token=rotated if isinstance(rotated, str) and rotated else None,
        expires_in=int(expires_in),
    )


async def exchange_refresh_token(
    base_url: str,
    refresh_token: str,
    origin: str = "",
    timeout: float = DEFAULT_TIMEOUT,
) -> RefreshResult:
    """
    Exchange a refresh token for a new access token.

    Uses POST /wp-json/wpcursor/v1/auth/token on the site. The origin is
    sent so the plugin can apply its soft origin check.

    Args:
        base_url: WordPress site root
        refresh_token: Refresh token previously issued by the plugin
        origin: This application's origin
        timeout: Seconds allowed for the round trip

    Returns:
        RefreshResult with the new access token

    Raises:
        RemoteAuthError: If the plugin rejects the refresh token
        RemoteConnectionError: On network failure or timeout
        ProtocolError: If no access token was returned
    """
    return await run_with_deadline(
        partial(_exchange_refresh_token_sync, base_url, refresh_token, origin, timeout),
        timeout,
        f"{base_url.rstrip('/')}{TOKEN_ENDPOINT_PATH}",
    )
