"""
Pytest configuration for wpagentic-mcp tests.
"""

from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from wpagentic_mcp.errors import NotInitializedError
from wpagentic_mcp.store import MemoryCredentialStore
from wpagentic_mcp.types import (
    HandshakeResult,
    RemoteCredential,
    ToolDescriptor,
    ToolResult,
)

# Note: With pytest-asyncio in auto mode, no event_loop fixture needed

SESSION_SECRET = "test-session-secret-0123456789"


class FakeProtocolClient:
    """
    Stand-in for ProtocolClient driven by a FakeClientFactory.

    Raises the factory's configured errors instead of doing network I/O.
    """

    def __init__(self, factory: "FakeClientFactory", credential: RemoteCredential, timeout: float):
        self.factory = factory
        self.credential = credential
        self.timeout = timeout
        self.initialized = False
        self.closed = False

    async def initialize(self) -> HandshakeResult:
        self.factory.calls.append(("initialize", self.credential.base_url))
        if self.factory.initialize_error is not None:
            raise self.factory.initialize_error
        self.initialized = True
        return HandshakeResult.from_result(self.factory.init_result)

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        if not self.initialized:
            raise NotInitializedError("Cannot call tool before initialize()")
        self.factory.calls.append(("tools/call", name, arguments))
        if self.factory.call_error is not None:
            raise self.factory.call_error
        return ToolResult(payload=self.factory.call_result)

    async def list_tools(self) -> List[ToolDescriptor]:
        if not self.initialized:
            raise NotInitializedError("Cannot list tools before initialize()")
        self.factory.calls.append(("tools/list/all",))
        return list(self.factory.tools)

    async def close(self) -> None:
        self.closed = True


class FakeClientFactory:
    """Callable matching the ConnectionManager client_factory signature."""

    def __init__(self, plugin_version: Optional[str] = "0.2.0"):
        server_info: Dict[str, Any] = {"name": "wpmcp"}
        if plugin_version is not None:
            server_info["version"] = plugin_version
        self.init_result: Dict[str, Any] = {
            "protocolVersion": "2024-11-05",
            "serverInfo": server_info,
            "capabilities": {"tools": {}, "toolsHash": "abc123"},
        }
        self.initialize_error: Optional[Exception] = None
        self.call_error: Optional[Exception] = None
        self.call_result: Any = {"content": [{"type": "text", "text": "ok"}]}
        self.tools: List[ToolDescriptor] = [ToolDescriptor(name="wp_get_posts")]
        self.clients: List[FakeProtocolClient] = []
        self.calls: List[tuple] = []

    def __call__(self, credential: RemoteCredential, timeout: float) -> FakeProtocolClient:
        client = FakeProtocolClient(self, credential, timeout)
        self.clients.append(client)
        return client


def make_response(
    status_code: int = 200,
    json_data: Any = None,
    text: Optional[str] = None,
    content_type: str = "application/json",
    reason: str = "",
) -> MagicMock:
    """Build a requests.Response-like mock."""
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.headers = {"Content-Type": content_type}
    if json_data is not None:
        response.json.return_value = json_data
        response.text = text if text is not None else str(json_data)
    else:
        response.json.side_effect = ValueError("No JSON object could be decoded")
        response.text = text or ""
    return response


@pytest.fixture
def credential():
    """Credential for a test site."""
    return RemoteCredential(
        base_url="https://blog.example.com",
        token="eyJhbGciOiJIUzI1NiJ9.test-token.signature",
        refresh_token="refresh-token-0001",
    )


@pytest.fixture
def memory_store():
    """Empty in-memory credential store."""
    return MemoryCredentialStore()


@pytest.fixture
def client_factory():
    """Fake client factory reporting a compatible plugin."""
    return FakeClientFactory()


@pytest.fixture
def session_secret():
    return SESSION_SECRET


@pytest.fixture
def response_factory():
    """Factory for requests.Response-like mocks."""
    return make_response
