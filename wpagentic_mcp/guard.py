"""
Origin and session guard for control requests.

Every mutating operation (connect, disconnect, tool invocation, write mode,
refresh) runs behind this guard. A request is rejected before any
credential is read or written if:
1. Its Origin header is present and neither same-origin nor allow-listed
2. No authenticated session can be resolved for it

Usage:
    from wpagentic_mcp import AccessGuard, GuardConfig, InboundRequest

    access_guard = AccessGuard(
        config=GuardConfig(allowed_origins=["https://app.example.com"]),
        session_resolver=lambda request: my_auth.user_id_for(request),
    )

    @access_guard.protect
    async def disconnect(request: InboundRequest) -> dict:
        access = get_access_context()
        ...
"""

from __future__ import annotations

import contextvars
import logging
from dataclasses import dataclass, field
from functools import wraps
from typing import (
    Any,
    Callable,
    Coroutine,
    List,
    Mapping,
    Optional,
    TypeVar,
    Union,
    overload,
)
from urllib.parse import urlsplit

from wpagentic_mcp.config import BridgeSettings, parse_origin_list
from wpagentic_mcp.errors import ForbiddenError, UnauthorizedError
from wpagentic_mcp.types import AccessContext

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Access context of the request currently being handled
_current_access: contextvars.ContextVar[Optional[AccessContext]] = (
    contextvars.ContextVar("current_access", default=None)
)


@dataclass
class InboundRequest:
    """
    Framework-neutral view of an inbound control request.

    Attributes:
        url: Absolute request URL (used for the same-origin check)
        headers: Request headers (looked up case-insensitively)
        method: HTTP method
    """
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    method: str = "POST"

    def header(self, name: str) -> Optional[str]:
        # Try exact case first, then case-insensitive
        if name in self.headers:
            return self.headers[name]
        lower_name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lower_name:
                return value
        return None

    @property
    def origin(self) -> Optional[str]:
        value = self.header("Origin")
        return value.strip() if value and value.strip() else None


# Resolves the authenticated user id for a request, or None
SessionResolver = Callable[[InboundRequest], Optional[str]]


@dataclass
class GuardConfig:
    """
    Configuration for the access guard.

    Attributes:
        allowed_origins: Origins allowed besides the request's own origin
        app_origin: This application's origin; also treated as same-origin
        allow_missing_origin: Accept requests without an Origin header
            (server-to-server calls)
    """
    allowed_origins: List[str] = field(default_factory=list)
    app_origin: Optional[str] = None
    allow_missing_origin: bool = True

    def __post_init__(self) -> None:
        self.allowed_origins = [
            origin.strip().rstrip("/").lower()
            for origin in self.allowed_origins
            if origin and origin.strip()
        ]
        if self.app_origin:
            self.app_origin = self.app_origin.rstrip("/").lower()

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> "GuardConfig":
        return cls(
            allowed_origins=list(settings.allowed_origins),
            app_origin=settings.app_origin,
            allow_missing_origin=settings.allow_missing_origin,
        )

    @classmethod
    def from_list(cls, origins: str, **kwargs: Any) -> "GuardConfig":
        """Build from a comma-separated origin list."""
        return cls(allowed_origins=parse_origin_list(origins), **kwargs)


def _request_origin(url: str) -> Optional[str]:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}".lower()


def is_allowed_origin(request: InboundRequest, config: GuardConfig) -> bool:
    """
    Check a request's Origin header.

    Allows:
    - A missing Origin, if config.allow_missing_origin
    - Same-origin requests (request URL or config.app_origin)
    - Origins on config.allowed_origins (case-insensitive)

    An unparseable request URL only matches the explicit lists.
    """
    origin = request.origin
    if origin is None:
        return config.allow_missing_origin

    origin = origin.rstrip("/").lower()
    if origin == "null":
        return False

    if origin == _request_origin(request.url):
        return True
    if config.app_origin and origin == config.app_origin:
        return True
    return origin in config.allowed_origins


def authorize(
    request: InboundRequest,
    session_resolver: SessionResolver,
    config: Optional[GuardConfig] = None,
    require_session: bool = True,
    check_origin: bool = True,
) -> AccessContext:
    """
    Authorize an inbound request.

    The origin is checked before the session is resolved; neither step
    touches credential storage.

    Args:
        request: The inbound request
        session_resolver: External resolver returning a user id or None
        config: Guard configuration (default: GuardConfig())
        require_session: Reject requests without a session
        check_origin: Apply the origin check

    Returns:
        AccessContext for the request

    Raises:
        ForbiddenError: If the origin is not allowed
        UnauthorizedError: If a session is required and none resolves
    """
    effective_config = config or GuardConfig()

    if check_origin and not is_allowed_origin(request, effective_config):
        logger.warning(f"Rejected {request.method} {request.url}: origin {request.origin!r} not allowed")
        raise ForbiddenError("Invalid origin", origin=request.origin)

    try:
        user_id = session_resolver(request)
    except Exception as e:
        raise UnauthorizedError(f"Session could not be resolved: {e}") from e

    if isinstance(user_id, str):
        user_id = user_id.strip() or None
    elif user_id is not None:
        user_id = str(user_id)

    if require_session and not user_id:
        raise UnauthorizedError("Unauthorized")

    return AccessContext(session_user_id=user_id, origin_header=request.origin)


def set_access_context(access: AccessContext) -> contextvars.Token:
    """
    Set the access context for the current context.

    Returns:
        Token that can be used to reset the context
    """
    return _current_access.set(access)


def get_access_context() -> Optional[AccessContext]:
    """Get the access context of the request being handled, if any."""
    return _current_access.get()


class AccessGuard:
    """
    Guard bound to a configuration and a session resolver.

    Attributes:
        config: Origin configuration
        session_resolver: External session resolver
    """

    def __init__(
        self,
        session_resolver: SessionResolver,
        config: Optional[GuardConfig] = None,
    ) -> None:
        self.session_resolver = session_resolver
        self.config = config or GuardConfig()

    def authorize(
        self,
        request: InboundRequest,
        require_session: bool = True,
        check_origin: bool = True,
    ) -> AccessContext:
        """See authorize()."""
        return authorize(
            request,
            self.session_resolver,
            config=self.config,
            require_session=require_session,
            check_origin=check_origin,
        )

    @overload
    def protect(
        self,
        func: Callable[..., Coroutine[Any, Any, R]],
    ) -> Callable[..., Coroutine[Any, Any, R]]:
        ...

    @overload
    def protect(
        self,
        *,
        require_session: bool = True,
        check_origin: bool = True,
    ) -> Callable[[Callable[..., Coroutine[Any, Any, R]]], Callable[..., Coroutine[Any, Any, R]]]:
        ...

    def protect(
        self,
        func: Optional[Callable[..., Coroutine[Any, Any, R]]] = None,
        *,
        require_session: bool = True,
        check_origin: bool = True,
    ) -> Union[
        Callable[..., Coroutine[Any, Any, R]],
        Callable[[Callable[..., Coroutine[Any, Any, R]]], Callable[..., Coroutine[Any, Any, R]]],
    ]:
        """
        Decorate an async handler whose first argument is the InboundRequest.

        The handler only runs once the request is authorized; its
        AccessContext is available through get_access_context().

        Example:
            @access_guard.protect
            async def call_tool(request, name, arguments):
                ...

            @access_guard.protect(check_origin=False)
            async def status(request):
                ...
        """
        def make_decorator(
            f: Callable[..., Coroutine[Any, Any, R]]
        ) -> Callable[..., Coroutine[Any, Any, R]]:
            @wraps(f)
            async def wrapper(request: InboundRequest, *args: Any, **kwargs: Any) -> R:
                access = self.authorize(
                    request,
                    require_session=require_session,
                    check_origin=check_origin,
                )
                token = set_access_context(access)
                try:
                    return await f(request, *args, **kwargs)
                finally:
                    _current_access.reset(token)

            return wrapper

        # Handle both @protect and @protect() syntax
        if func is not None:
            return make_decorator(func)
        return make_decorator
