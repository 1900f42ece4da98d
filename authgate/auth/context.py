"""
Request context - one request handle, whatever the transport.

Route guards run for plain HTTP routes, GraphQL resolvers and websockets.
Each transport hands us something different; the adapters here reduce all
of them to a `RequestHandle` with headers and the session/user slots.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class TransportKind(str, Enum):
    """How the current invocation reached us."""

    HTTP = "http"
    GRAPHQL = "graphql"
    WEBSOCKET = "websocket"


@dataclass(frozen=True)
class InvocationContext:
    """
    A framework invocation, tagged with its transport.

    For HTTP and WEBSOCKET `target` is the Starlette Request/WebSocket.
    For GRAPHQL it is the resolver context (e.g. `info.context`), which
    carries the underlying request under `request` or `req`.
    """

    kind: TransportKind
    target: Any

    @classmethod
    def http(cls, request: Any) -> InvocationContext:
        return cls(TransportKind.HTTP, request)

    @classmethod
    def graphql(cls, context: Any) -> InvocationContext:
        return cls(TransportKind.GRAPHQL, context)

    @classmethod
    def websocket(cls, websocket: Any) -> InvocationContext:
        return cls(TransportKind.WEBSOCKET, websocket)


class RequestHandle:
    """
    Transport-agnostic view of the per-request object.

    Session and user are stored on `request.state` when the object has a
    Starlette state, otherwise directly on the object (or its keys, for
    mapping-shaped requests).
    """

    def __init__(self, request: Any, headers: Mapping[str, Any]):
        self.request = request
        self.headers = headers

    def _slots(self) -> Any:
        return getattr(self.request, "state", self.request)

    def _read(self, name: str) -> Any:
        slots = self._slots()
        if isinstance(slots, dict):
            return slots.get(name)
        return getattr(slots, name, None)

    def _write(self, name: str, value: Any) -> None:
        slots = self._slots()
        if isinstance(slots, dict):
            slots[name] = value
        else:
            setattr(slots, name, value)

    @property
    def session(self) -> Any:
        return self._read("session")

    @session.setter
    def session(self, value: Any) -> None:
        self._write("session", value)

    @property
    def user(self) -> Any:
        return self._read("user")

    @user.setter
    def user(self, value: Any) -> None:
        self._write("user", value)

    @property
    def resolved(self) -> bool:
        """Whether the session was already resolved for this request."""
        return bool(self._read("auth_resolved"))

    @resolved.setter
    def resolved(self, value: bool) -> None:
        self._write("auth_resolved", value)


# =============================================================================
# Adapters
# =============================================================================


def _lookup(obj: Any, name: str) -> Any:
    # Attributes first: Starlette connections are Mappings over the raw scope.
    if obj is None:
        return None
    value = getattr(obj, name, None)
    if value is None and isinstance(obj, Mapping):
        value = obj.get(name)
    return value


class ContextAdapter:
    """Turns one transport's invocation target into a request handle."""

    def extract_request(self, target: Any) -> Any:
        return target

    def extract_headers(self, request: Any) -> Mapping[str, Any]:
        """Request headers, else handshake headers (sockets), else nothing."""
        headers = _lookup(request, "headers")
        if headers is None:
            headers = _lookup(_lookup(request, "handshake"), "headers")
        return headers if headers is not None else {}

    def extract(self, target: Any) -> RequestHandle:
        request = self.extract_request(target)
        return RequestHandle(request, self.extract_headers(request))


class HttpContextAdapter(ContextAdapter):
    """Starlette requests and websockets are already the request."""


class GraphQLContextAdapter(ContextAdapter):
    """Unwraps the resolver context to the request it was built from."""

    def extract_request(self, target: Any) -> Any:
        request = _lookup(target, "request")
        if request is None:
            request = _lookup(target, "req")
        return request if request is not None else target


_adapters: dict[TransportKind, ContextAdapter] = {
    TransportKind.HTTP: HttpContextAdapter(),
    TransportKind.WEBSOCKET: HttpContextAdapter(),
    TransportKind.GRAPHQL: GraphQLContextAdapter(),
}


def get_adapter(kind: TransportKind) -> ContextAdapter:
    """Get the adapter for a transport."""
    return _adapters[TransportKind(kind)]


def register_adapter(kind: TransportKind, adapter: ContextAdapter) -> None:
    """Replace the adapter used for a transport."""
    _adapters[TransportKind(kind)] = adapter


def extract(ctx: InvocationContext) -> RequestHandle:
    """Build the request handle for an invocation."""
    return get_adapter(ctx.kind).extract(ctx.target)
