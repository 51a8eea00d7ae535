"""
Remote plugin protocol for wpagentic-mcp.

This module handles:
- JSON-RPC handshake and tool invocation against the WordPress plugin
- Refresh-token exchange
- Health checks and version compatibility
"""

from wpagentic_mcp._core.version import (
    BRIDGE_VERSION,
    MIN_PLUGIN_VERSION,
    PROTOCOL_VERSION,
    check_compatibility,
    compare_versions,
    is_plugin_compatible,
    parse_version,
    version_gte,
)
from wpagentic_mcp._core.client import (
    ProtocolClient,
    exchange_refresh_token,
)
from wpagentic_mcp._core.health import (
    PluginHealth,
    check_version_compatibility,
    probe_plugin_health,
)

__all__ = [
    # Version
    "BRIDGE_VERSION",
    "MIN_PLUGIN_VERSION",
    "PROTOCOL_VERSION",
    "check_compatibility",
    "compare_versions",
    "is_plugin_compatible",
    "parse_version",
    "version_gte",
    # Client
    "ProtocolClient",
    "exchange_refresh_token",
    # Health
    "PluginHealth",
    "check_version_compatibility",
    "probe_plugin_health",
]
