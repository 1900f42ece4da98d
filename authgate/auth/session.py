"""
Sessions - what the provider says about the caller.

The provider hands back whatever shape it likes (a dict, an object).
We normalize it once, at resolution time, into a `Session` whose user
role is a tagged variant, so policy checks never branch on raw shapes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from fastapi.datastructures import Headers

from authgate.auth.context import RequestHandle
from authgate.integrations import sentry
from authgate.provider import AuthProvider

logger = logging.getLogger(__name__)


# =============================================================================
# Roles
# =============================================================================


@dataclass(frozen=True)
class SingleRole:
    """User holds exactly one role."""

    name: str

    def matches(self, required: frozenset[str]) -> bool:
        return self.name in required


@dataclass(frozen=True)
class MultipleRoles:
    """User holds an ordered collection of roles."""

    names: tuple[str, ...]

    def matches(self, required: frozenset[str]) -> bool:
        return any(name in required for name in self.names)


Role = SingleRole | MultipleRoles


def parse_role(raw: Any) -> Role | None:
    """
    Normalize a raw role value.

    A string becomes SingleRole, a list/tuple/set of strings becomes
    MultipleRoles. Anything else (missing, numbers, mixed collections)
    is treated as no role at all.
    """
    if isinstance(raw, str):
        return SingleRole(raw)
    if isinstance(raw, (list, tuple, set, frozenset)):
        if all(isinstance(name, str) for name in raw):
            names = sorted(raw) if isinstance(raw, (set, frozenset)) else raw
            return MultipleRoles(tuple(names))
    return None


# =============================================================================
# Session model
# =============================================================================


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_dict(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, Mapping):
        return dict(obj)
    return dict(getattr(obj, "__dict__", {}))


@dataclass(frozen=True)
class SessionUser:
    """The authenticated identity behind a session."""

    id: str | None
    role: Role | None = None
    attributes: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_provider(cls, raw: Any) -> SessionUser:
        return cls(
            id=_field(raw, "id"),
            role=parse_role(_field(raw, "role")),
            attributes=_as_dict(raw),
        )


@dataclass(frozen=True)
class Session:
    """
    A resolved session.

    `data` is the provider's session record (minus the user), `raw` is
    exactly what the provider returned.
    """

    user: SessionUser
    data: dict[str, Any] = field(default_factory=dict, repr=False)
    raw: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def from_provider(cls, raw: Any) -> Session:
        data = _as_dict(_field(raw, "session"))
        return cls(
            user=SessionUser.from_provider(_field(raw, "user")),
            data=data,
            raw=raw,
        )


# =============================================================================
# Header normalization
# =============================================================================


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)


def normalize_headers(raw: Headers | Mapping[str, Any] | Iterable[tuple[Any, Any]] | None) -> dict[str, str]:
    """
    Flatten framework headers into `{lower-case name: value}`.

    Repeated headers are joined with ", ", the way fetch-style Headers
    objects present them.
    """
    if raw is None:
        return {}

    if isinstance(raw, Headers):
        pairs: Iterable[tuple[Any, Any]] = raw.raw
    elif isinstance(raw, Mapping):
        pairs = raw.items()
    else:
        pairs = raw

    headers: dict[str, str] = {}
    for name, value in pairs:
        key = _text(name).lower()
        if isinstance(value, (list, tuple)):
            text = ", ".join(_text(v) for v in value)
        else:
            text = _text(value)
        headers[key] = f"{headers[key]}, {text}" if key in headers else text
    return headers


# =============================================================================
# Resolver
# =============================================================================


class SessionResolver:
    """
    Asks the provider who is calling.

    One provider call per resolution; provider errors are not caught.
    """

    def __init__(self, provider: AuthProvider):
        self.provider = provider

    async def resolve(self, headers: Any) -> Session | None:
        raw = await self.provider.get_session(normalize_headers(headers))
        if raw is None:
            return None
        if isinstance(raw, Session):
            return raw
        return Session.from_provider(raw)

    async def resolve_for(self, handle: RequestHandle) -> Session | None:
        """
        Resolve and attach session/user to the request handle.

        Attached before any policy runs, so public routes (and error
        reporting) still see who the caller was. A request is resolved
        once; later guards on the same request reuse the attached session.
        """
        if handle.resolved:
            return handle.session

        session = await self.resolve(handle.headers)
        handle.session = session
        handle.user = session.user if session else None
        handle.resolved = True

        if session is not None:
            sentry.set_user(session.user)
        logger.debug(f"Resolved session for user {session.user.id if session else None}")
        return session
