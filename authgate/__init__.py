"""
authgate - request-time auth gating and provider hooks for FastAPI.

Sessions come from an external provider. authgate decides, per request,
whether the caller may reach a route, and lets independent handlers hook
into the provider's own operations.
"""

from authgate.api import AuthModule, get_auth_service
from authgate.auth import (
    AccessGuard,
    AuthError,
    ForbiddenError,
    PolicyScope,
    RoutePolicy,
    Session,
    UnauthorizedError,
    current_session,
    evaluate,
    optional,
    public,
    require,
)
from authgate.hooks import HookRegistry, after_hook, before_hook, hook_container
from authgate.provider import (
    AuthProvider,
    AuthService,
    HookContext,
    HookSlots,
    ProviderError,
    ProviderOptions,
)

__all__ = [
    "AuthModule",
    "get_auth_service",
    "require",
    "optional",
    "public",
    "current_session",
    "evaluate",
    "AccessGuard",
    "PolicyScope",
    "RoutePolicy",
    "Session",
    "AuthError",
    "UnauthorizedError",
    "ForbiddenError",
    "HookRegistry",
    "hook_container",
    "before_hook",
    "after_hook",
    "AuthProvider",
    "AuthService",
    "HookContext",
    "HookSlots",
    "ProviderError",
    "ProviderOptions",
]
