"""
Version constants and compatibility checking for wpagentic-mcp.

wpagentic-mcp versions independently from the WordPress plugin it talks to:
- BRIDGE_VERSION: This package's version (sent as clientInfo.version)
- MIN_PLUGIN_VERSION: Oldest plugin version the bridge accepts
- PROTOCOL_VERSION: MCP protocol revision sent in initialize
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple

from wpagentic_mcp.types import CompatibilityVerdict

logger = logging.getLogger(__name__)

# wpagentic-mcp version (user-facing, independent semver)
BRIDGE_VERSION = "0.1.0"

# Oldest compatible WordPress plugin
MIN_PLUGIN_VERSION = "0.1.0"

# MCP protocol revision used in the initialize request
PROTOCOL_VERSION = "2024-11-05"

CLIENT_NAME = "wpAgentic"

# Used when the plugin reports no version at all
DEFAULT_PLUGIN_VERSION = "0.0.0"

# ASCII digits only; str.isdigit() also accepts superscripts int() rejects
_DIGITS = re.compile(r"[0-9]+")
_LEADING_DIGITS = re.compile(r"^\s*([0-9]+)")


def parse_version(version: str, strict: bool = False) -> Tuple[int, ...]:
    """
    Parse a dotted version string into a tuple of numeric components.

    Any number of components is accepted. A component without leading
    digits is read as 0 ("1.x.3" -> (1, 0, 3)); a component with leading
    digits keeps them ("3-beta" -> 3).

    Args:
        version: Version string like "0.2.0" or "v1.2"
        strict: Raise instead of coercing malformed components to 0

    Returns:
        Tuple of integer components

    Raises:
        ValueError: If strict and any component is not purely numeric
    """
    # Strip leading 'v' if present
    version = (version or "").strip().lstrip("vV")

    components = []
    for segment in version.split("."):
        if _DIGITS.fullmatch(segment):
            components.append(int(segment))
            continue

        if strict:
            raise ValueError(f"Invalid version string: {version!r}")

        match = _LEADING_DIGITS.match(segment)
        components.append(int(match.group(1)) if match else 0)

    return tuple(components)


def compare_versions(a: str, b: str) -> int:
    """
    Compare two version strings.

    The shorter component sequence is padded with zeros, then components
    are compared left to right; the first unequal pair decides.

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b
    """
    pa = parse_version(a)
    pb = parse_version(b)
    length = max(len(pa), len(pb))
    pa = pa + (0,) * (length - len(pa))
    pb = pb + (0,) * (length - len(pb))

    for na, nb in zip(pa, pb):
        if na > nb:
            return 1
        if na < nb:
            return -1
    return 0


def version_gte(a: str, b: str) -> bool:
    """True if version a is greater than or equal to version b."""
    return compare_versions(a, b) >= 0


def _is_well_formed(version: str) -> bool:
    try:
        parse_version(version, strict=True)
    except ValueError:
        return False
    return True


def check_compatibility(
    plugin_version: Optional[str] = None,
    min_required: str = MIN_PLUGIN_VERSION,
) -> CompatibilityVerdict:
    """
    Decide whether a plugin version satisfies the minimum.

    Total and deterministic: a missing or empty version is treated as
    "0.0.0", and malformed components compare as 0.

    Args:
        plugin_version: Version reported by the plugin handshake
        min_required: Minimum accepted version (default: MIN_PLUGIN_VERSION)

    Returns:
        CompatibilityVerdict
    """
    version = plugin_version or DEFAULT_PLUGIN_VERSION

    if not _is_well_formed(version):
        logger.warning(f"Plugin reported malformed version {version!r}; non-numeric parts read as 0")

    ok = version_gte(version, min_required)
    return CompatibilityVerdict(
        ok=ok,
        plugin_version=version,
        min_required=min_required,
        reason=None if ok else f"Plugin {version} < required {min_required}",
    )


def is_plugin_compatible(plugin_version: Optional[str]) -> bool:
    """
    Check if a plugin version is compatible with this bridge.

    Args:
        plugin_version: Plugin version string (e.g., "0.2.0")

    Returns:
        True if compatible, False otherwise
    """
    return check_compatibility(plugin_version).ok
