"""
Environment-driven settings for wpagentic-mcp.

Environment Variables:
    WPAGENTIC_ALLOWED_ORIGINS: Comma-separated origin allow-list
        (fallback: ALLOWED_ORIGINS)
    WPAGENTIC_APP_ORIGIN: This application's origin
        (fallback: NEXT_PUBLIC_APP_URL)
    WPAGENTIC_ALLOW_MISSING_ORIGIN: Accept requests without an Origin header
    WPAGENTIC_SESSION_SECRET: Secret for sealing stored credentials
        (fallbacks: NEXTAUTH_SECRET, SESSION_SECRET)
    WPAGENTIC_REQUEST_TIMEOUT: Seconds per remote round trip
    WPAGENTIC_STORE_DIR: Directory for FileCredentialStore
    WPAGENTIC_SECURE_COOKIES: Add Secure to credential cookies
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from wpagentic_mcp._core.client import DEFAULT_TIMEOUT

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _first(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _parse_bool(name: str, value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def parse_origin_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated origin list, lowercased, empties dropped."""
    if not value:
        return []
    return [item.strip().rstrip("/").lower() for item in value.split(",") if item.strip()]


@dataclass
class BridgeSettings:
    """
    Settings shared by the guard, the stores and the lifecycle manager.

    Attributes:
        allowed_origins: Origins allowed to issue control requests
        app_origin: This application's own origin (always allowed)
        allow_missing_origin: Let requests without Origin through
        session_secret: Secret for CredentialSealer
        request_timeout: Seconds per remote round trip
        store_dir: Directory for FileCredentialStore (None: platform default)
        secure_cookies: Add Secure to credential cookies
    """
    allowed_origins: List[str] = field(default_factory=list)
    app_origin: Optional[str] = None
    allow_missing_origin: bool = True
    session_secret: Optional[str] = None
    request_timeout: float = DEFAULT_TIMEOUT
    store_dir: Optional[str] = None
    secure_cookies: bool = True

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Validate configuration values."""
        if self.request_timeout <= 0:
            raise ValueError(
                f"request_timeout must be positive, got {self.request_timeout}"
            )
        if self.app_origin:
            self.app_origin = self.app_origin.rstrip("/")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "BridgeSettings":
        """
        Load settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ

        Raises:
            ValueError: If a numeric or boolean variable is malformed
        """
        env = os.environ if env is None else env

        timeout_raw = _first(env, "WPAGENTIC_REQUEST_TIMEOUT")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
        except ValueError as e:
            raise ValueError(
                f"WPAGENTIC_REQUEST_TIMEOUT must be a number, got {timeout_raw!r}"
            ) from e

        return cls(
            allowed_origins=parse_origin_list(
                _first(env, "WPAGENTIC_ALLOWED_ORIGINS", "ALLOWED_ORIGINS")
            ),
            app_origin=_first(env, "WPAGENTIC_APP_ORIGIN", "NEXT_PUBLIC_APP_URL"),
            allow_missing_origin=_parse_bool(
                "WPAGENTIC_ALLOW_MISSING_ORIGIN",
                _first(env, "WPAGENTIC_ALLOW_MISSING_ORIGIN"),
                True,
            ),
            session_secret=_first(
                env, "WPAGENTIC_SESSION_SECRET", "NEXTAUTH_SECRET", "SESSION_SECRET"
            ),
            request_timeout=timeout,
            store_dir=_first(env, "WPAGENTIC_STORE_DIR"),
            secure_cookies=_parse_bool(
                "WPAGENTIC_SECURE_COOKIES", _first(env, "WPAGENTIC_SECURE_COOKIES"), True
            ),
        )
