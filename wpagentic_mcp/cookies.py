"""
Browser cookie surface for the site credential.

The web layer keeps a copy of the active site credential in httpOnly
cookies. This module renders the Set-Cookie values for storing them and,
on disconnect, for clearing every one of them (Max-Age=0, Path=/).
"""

from __future__ import annotations

from http.cookies import Morsel
from typing import List, Optional
from urllib.parse import quote

from wpagentic_mcp.types import RemoteCredential

BASE_COOKIE = "wp_base"
TOKEN_COOKIE = "wp_jwt"
REFRESH_COOKIE = "wp_refresh"
WRITE_MODE_COOKIE = "wp_write_mode"

CREDENTIAL_COOKIES = (BASE_COOKIE, TOKEN_COOKIE, REFRESH_COOKIE, WRITE_MODE_COOKIE)

DEFAULT_MAX_AGE = 60 * 60 * 24 * 7  # 7 days
REFRESH_MAX_AGE = 60 * 60 * 24 * 30  # 30 days


def _morsel(name: str, value: str, max_age: int, secure: bool) -> str:
    morsel: Morsel = Morsel()
    morsel.set(name, value, quote(value, safe=""))
    morsel["path"] = "/"
    morsel["max-age"] = max_age
    morsel["httponly"] = True
    morsel["samesite"] = "Lax"
    if secure:
        morsel["secure"] = True
    return morsel.OutputString()


def credential_cookies(
    credential: RemoteCredential,
    secure: bool = True,
    max_age: int = DEFAULT_MAX_AGE,
    token_max_age: Optional[int] = None,
) -> List[str]:
    """
    Render Set-Cookie values carrying a credential to the browser.

    Args:
        credential: Credential to expose to the web layer
        secure: Add the Secure attribute (disable only for local http)
        max_age: Lifetime of the base URL and write mode cookies
        token_max_age: Lifetime of the access token cookie (default: max_age)

    Returns:
        List of Set-Cookie header values
    """
    cookies = [
        _morsel(BASE_COOKIE, credential.base_url, max_age, secure),
        _morsel(TOKEN_COOKIE, credential.token, token_max_age or max_age, secure),
        _morsel(WRITE_MODE_COOKIE, "1" if credential.write_mode_enabled else "0", max_age, secure),
    ]
    if credential.refresh_token:
        cookies.append(_morsel(REFRESH_COOKIE, credential.refresh_token, REFRESH_MAX_AGE, secure))
    return cookies


def clear_credential_cookies(secure: bool = True) -> List[str]:
    """Render Set-Cookie values that drop every credential cookie."""
    return [_morsel(name, "", 0, secure) for name in CREDENTIAL_COOKIES]
