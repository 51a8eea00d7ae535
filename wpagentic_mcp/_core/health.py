"""
Health probe and version compatibility for the WordPress plugin.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from wpagentic_mcp._core.version import MIN_PLUGIN_VERSION, check_compatibility
from wpagentic_mcp.errors import IncompatibleVersionError
from wpagentic_mcp.types import CompatibilityVerdict, HandshakeResult

logger = logging.getLogger(__name__)

HEALTH_ENDPOINT_PATH = "/wp-json/wpcursor/v1/health"


def check_version_compatibility(
    handshake: HandshakeResult,
    min_required: str = MIN_PLUGIN_VERSION,
) -> CompatibilityVerdict:
    """
    Check that the plugin behind a handshake is new enough.

    Recomputed on every call; verdicts are never cached because the site
    can upgrade or downgrade the plugin between calls.

    Args:
        handshake: Result of ProtocolClient.initialize()
        min_required: Minimum accepted plugin version

    Returns:
        The passing CompatibilityVerdict

    Raises:
        IncompatibleVersionError: If the plugin is older than min_required
    """
    verdict = check_compatibility(handshake.plugin_version, min_required)
    if not verdict.ok:
        raise IncompatibleVersionError(verdict)

    logger.debug(
        f"Version check passed: plugin={verdict.plugin_version}, "
        f"min={verdict.min_required}"
    )
    return verdict


@dataclass
class PluginHealth:
    """
    Unauthenticated health report published by the plugin.

    Attributes:
        ok: True if the health endpoint answered with 2xx
        status: HTTP status when the endpoint answered with an error
        message: Failure description when ok is False
        plugin_version: Plugin version reported by the site
    """
    ok: bool
    status: Optional[int] = None
    message: Optional[str] = None
    plugin_version: Optional[str] = None
    protocol_version: Optional[str] = None
    schema_version: Optional[str] = None
    capabilities: Optional[Dict[str, Any]] = None
    environment: Optional[Dict[str, Any]] = None

    @property
    def compatibility(self) -> CompatibilityVerdict:
        return check_compatibility(self.plugin_version)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "status": self.status,
            "message": self.message,
            "pluginVersion": self.plugin_version,
            "protocolVersion": self.protocol_version,
            "schemaVersion": self.schema_version,
            "capabilities": self.capabilities,
            "environment": self.environment,
        }


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value if isinstance(value, str) and value else None


def _probe_plugin_health_sync(base_url: str, timeout: float) -> PluginHealth:
    """Sync implementation of probe_plugin_health."""
    url = f"{base_url.rstrip('/')}{HEALTH_ENDPOINT_PATH}"

    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.debug(f"Health probe of {url} failed: {e}")
        return PluginHealth(ok=False, message=f"Failed to probe plugin health: {e}")

    if not 200 <= response.status_code < 300:
        return PluginHealth(
            ok=False,
            status=response.status_code,
            message=response.reason or None,
        )

    try:
        data = response.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    capabilities = data.get("capabilities")
    environment = data.get("environment")
    return PluginHealth(
        ok=True,
        plugin_version=_optional_str(data.get("pluginVersion")),
        protocol_version=_optional_str(data.get("protocolVersion")),
        schema_version=_optional_str(data.get("schemaVersion")),
        capabilities=capabilities if isinstance(capabilities, dict) else None,
        environment=environment if isinstance(environment, dict) else None,
    )


async def probe_plugin_health(base_url: str, timeout: float = 10.0) -> PluginHealth:
    """
    Probe the plugin's public health endpoint.

    Needs no credential and never raises: unreachable sites, error
    statuses and responses that outlast the timeout come back as
    PluginHealth(ok=False).

    Args:
        base_url: WordPress site root
        timeout: Seconds allowed for the whole probe

    Returns:
        PluginHealth
    """
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(
            loop.run_in_executor(None, _probe_plugin_health_sync, base_url, timeout),
            timeout,
        )
    except asyncio.TimeoutError:
        logger.debug(f"Health probe of {base_url} timed out after {timeout}s")
        return PluginHealth(ok=False, message=f"Timed out after {timeout}s probing plugin health")
