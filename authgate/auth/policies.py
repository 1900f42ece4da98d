"""
Policies - who may reach a route.

Every route carries a `RoutePolicy`: public, optional or required, with an
optional set of roles. `evaluate()` turns a resolved session plus a policy
into an allow/deny decision; `AccessGuard` wires that into FastAPI.

Usage:
    @app.get("/admin")
    async def admin(session: Session = Depends(require("admin"))):
        ...

    @app.get("/feed")
    async def feed(session: Session | None = Depends(optional())):
        ...
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from fastapi import Request, WebSocket, WebSocketException, status

from authgate.auth.context import InvocationContext, RequestHandle, extract
from authgate.auth.errors import AuthError, ForbiddenError, UnauthorizedError
from authgate.auth.session import MultipleRoles, Session, SessionResolver, SingleRole
from authgate.provider import AuthProvider

logger = logging.getLogger(__name__)


# =============================================================================
# Route policy
# =============================================================================


class PolicyKind(str, Enum):
    PUBLIC = "public"        # Anyone, session or not, roles ignored
    OPTIONAL = "optional"    # Anonymous allowed; roles apply once signed in
    REQUIRED = "required"    # Session required


@dataclass(frozen=True)
class RoutePolicy:
    """
    Access requirement attached to a route.

    `roles`, when given, must be non-empty: the caller needs at least one.
    """

    kind: PolicyKind = PolicyKind.REQUIRED
    roles: frozenset[str] | None = None

    def __post_init__(self):
        if self.roles is None:
            return
        roles = frozenset(self.roles)
        if not roles:
            raise ValueError("Required roles must be non-empty when given")
        if not all(isinstance(role, str) for role in roles):
            raise ValueError("Roles must be strings")
        object.__setattr__(self, "roles", roles)

    @classmethod
    def public(cls) -> "RoutePolicy":
        return cls(PolicyKind.PUBLIC)

    @classmethod
    def optional(cls, roles: Iterable[str] | None = None) -> "RoutePolicy":
        return cls(PolicyKind.OPTIONAL, _roles(roles))

    @classmethod
    def required(cls, roles: Iterable[str] | None = None) -> "RoutePolicy":
        return cls(PolicyKind.REQUIRED, _roles(roles))


def _roles(roles: Iterable[str] | None) -> frozenset[str] | None:
    if roles is None:
        return None
    if isinstance(roles, str):
        roles = [roles]
    return frozenset(roles)


# Unmarked routes need a session, any role
DEFAULT_POLICY = RoutePolicy()


def resolve_policy(
    route: RoutePolicy | None = None,
    scope: RoutePolicy | None = None,
) -> RoutePolicy:
    """
    Combine a route's policy with its declaring scope's, flag by flag.

    Public and optional are markers: set at either level, they apply.
    Roles come from the route when it names any, else from the scope.
    So an optional route inside an admin scope is still admin-only for
    signed-in callers.
    """
    if route is None or scope is None:
        return route or scope or DEFAULT_POLICY

    kinds = {route.kind, scope.kind}
    if PolicyKind.PUBLIC in kinds:
        kind = PolicyKind.PUBLIC
    elif PolicyKind.OPTIONAL in kinds:
        kind = PolicyKind.OPTIONAL
    else:
        kind = PolicyKind.REQUIRED

    roles = route.roles if route.roles is not None else scope.roles
    return RoutePolicy(kind, roles)


# =============================================================================
# Decision
# =============================================================================


class FailureKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"

    @property
    def error(self) -> type[AuthError]:
        return UnauthorizedError if self is FailureKind.UNAUTHORIZED else ForbiddenError


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a policy check: allow, or deny with a `(status, code, message)`."""

    allowed: bool
    failure: FailureKind | None = None

    @property
    def status_code(self) -> int:
        return self.failure.error.status_code if self.failure else 200

    @property
    def code(self) -> str | None:
        return self.failure.error.code if self.failure else None

    @property
    def message(self) -> str | None:
        return self.failure.error.message if self.failure else None

    def raise_for_denial(self) -> None:
        if self.failure is not None:
            raise self.failure.error()


ALLOW = AccessDecision(allowed=True)
DENY_UNAUTHORIZED = AccessDecision(allowed=False, failure=FailureKind.UNAUTHORIZED)
DENY_FORBIDDEN = AccessDecision(allowed=False, failure=FailureKind.FORBIDDEN)


def evaluate(session: Session | None, policy: RoutePolicy) -> AccessDecision:
    """
    Decide whether a caller may reach a route. First matching rule wins:

    1. Public routes always allow, even with a session and role limits.
    2. Optional routes allow anonymous callers.
    3. Any other anonymous caller is unauthorized.
    4. No role restriction: allow.
    5-6. Otherwise the user's role (single or many) must hit one of the
       required roles, or the caller is forbidden.
    """
    if policy.kind is PolicyKind.PUBLIC:
        return ALLOW

    if session is None:
        if policy.kind is PolicyKind.OPTIONAL:
            return ALLOW
        return DENY_UNAUTHORIZED

    if not policy.roles:
        return ALLOW

    role = session.user.role
    has_role = isinstance(role, (SingleRole, MultipleRoles)) and role.matches(policy.roles)
    return ALLOW if has_role else DENY_FORBIDDEN


# =============================================================================
# Guards
# =============================================================================


class AccessGuard:
    """
    Resolve the session and enforce a policy for one route.

    Works as a FastAPI dependency (`Depends(guard)`, or
    `Depends(guard.websocket)` on websocket routes) and for any other
    transport through `check()`.
    """

    def __init__(
        self,
        policy: RoutePolicy | None = None,
        *,
        scope: RoutePolicy | None = None,
        provider: AuthProvider | None = None,
    ):
        self.policy = resolve_policy(policy, scope)
        self.provider = provider

    def _provider_for(self, handle: RequestHandle) -> AuthProvider:
        if self.provider is not None:
            return self.provider
        app = getattr(handle.request, "app", None)
        provider = getattr(getattr(app, "state", None), "auth_provider", None)
        if provider is None:
            raise RuntimeError("No auth provider configured - call AuthModule.configure(app) first")
        return provider

    async def check(self, ctx: InvocationContext) -> Session | None:
        """Allow (returning the session, possibly None) or raise an AuthError."""
        handle = extract(ctx)
        session = await SessionResolver(self._provider_for(handle)).resolve_for(handle)

        decision = evaluate(session, self.policy)
        if not decision.allowed:
            logger.debug(f"Denied {ctx.kind.value} request ({self.policy.kind.value}): {decision.code}")
        decision.raise_for_denial()
        return session

    async def __call__(self, request: Request) -> Session | None:
        return await self.check(InvocationContext.http(request))

    async def websocket(self, websocket: WebSocket) -> Session | None:
        try:
            return await self.check(InvocationContext.websocket(websocket))
        except AuthError as e:
            raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)


class PolicyScope:
    """
    A declaring scope (router, resolver class) with a shared policy.

    Usage:
        admin = PolicyScope(RoutePolicy.required(["admin"]))

        @router.get("/users")
        async def users(session: Session = Depends(admin.guard())):
            ...

        @router.get("/status")
        async def health(session: Session | None = Depends(admin.guard(RoutePolicy.public()))):
            ...

    The route policy is merged into the scope's (see `resolve_policy`),
    it does not replace it.
    """

    def __init__(self, policy: RoutePolicy, *, provider: AuthProvider | None = None):
        self.policy = policy
        self.provider = provider

    def guard(self, route: RoutePolicy | None = None) -> AccessGuard:
        return AccessGuard(route, scope=self.policy, provider=self.provider)


# =============================================================================
# Main Interface
# =============================================================================


def public() -> AccessGuard:
    """Anyone may call; the session is still resolved and attached."""
    return AccessGuard(RoutePolicy.public())


def optional(*roles: str) -> AccessGuard:
    """Anonymous callers allowed; signed-in callers must hold one of `roles`."""
    return AccessGuard(RoutePolicy.optional(roles or None))


def require(*roles: str) -> AccessGuard:
    """A session is required, holding one of `roles` if any are given."""
    return AccessGuard(RoutePolicy.required(roles or None))


def current_session(request: Request) -> Session | None:
    """The session the guard attached to this request."""
    return getattr(request.state, "session", None)


def session_from(ctx: InvocationContext) -> Session | None:
    """Same as `current_session`, for any transport."""
    return extract(ctx).session
