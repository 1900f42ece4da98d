"""
Request-time access control.

Per request: extract the request from whatever transport delivered it,
resolve the session through the provider, then check the route's policy.
"""

from authgate.auth.context import (
    InvocationContext,
    RequestHandle,
    TransportKind,
    extract,
)
from authgate.auth.errors import (
    AuthError,
    ForbiddenError,
    UnauthorizedError,
)
from authgate.auth.policies import (
    AccessDecision,
    AccessGuard,
    FailureKind,
    PolicyKind,
    PolicyScope,
    RoutePolicy,
    current_session,
    evaluate,
    optional,
    public,
    require,
    session_from,
)
from authgate.auth.session import (
    MultipleRoles,
    Session,
    SessionResolver,
    SessionUser,
    SingleRole,
)

__all__ = [
    # Main interface
    "require",
    "optional",
    "public",
    "current_session",
    "session_from",
    "AccessGuard",
    "PolicyScope",
    # Policy engine
    "RoutePolicy",
    "PolicyKind",
    "AccessDecision",
    "FailureKind",
    "evaluate",
    # Sessions
    "Session",
    "SessionUser",
    "SingleRole",
    "MultipleRoles",
    "SessionResolver",
    # Transports
    "InvocationContext",
    "RequestHandle",
    "TransportKind",
    "extract",
    # Errors
    "AuthError",
    "UnauthorizedError",
    "ForbiddenError",
]
