"""
Provider contract - what authgate needs from the session-issuing provider.

The provider owns sessions, storage and cryptography. We only talk to it
through two seams:

1. `get_session(headers)` - resolve the session behind a request
2. `options.hooks` - the before/after slots the provider calls around
   each of its own operations
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence, runtime_checkable

# A hook receives the provider's per-operation context. Sync or async.
HookFn = Callable[["HookContext"], Awaitable[None] | None]


class ProviderError(Exception):
    """
    Opaque failure raised (or returned) by the provider.

    authgate never interprets or retries these; they reach the caller as-is.
    """

    def __init__(self, status_code: int, message: str, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code


@dataclass
class HookContext:
    """Per-operation execution context shared by every hook in a chain."""

    path: str
    returned: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class HookSlots:
    """The provider's `hooks` object: one callable per timing."""

    before: HookFn | None = None
    after: HookFn | None = None

    def get(self, timing: str) -> HookFn | None:
        return getattr(self, timing)

    def set(self, timing: str, hook: HookFn) -> None:
        setattr(self, timing, hook)


@dataclass
class ProviderOptions:
    """Provider configuration. Only `hooks` is ever written by authgate."""

    base_path: str | None = "/api/auth"
    trusted_origins: Sequence[str] | Callable[..., Any] | None = None
    hooks: HookSlots | dict[str, HookFn] | None = None


@runtime_checkable
class AuthProvider(Protocol):
    """
    Anything that can resolve sessions and exposes hook slots.

    Providers may also expose a `handler` ASGI app serving their own
    endpoints (sign-in, sign-up, ...); `AuthModule` mounts it when present.
    """

    options: ProviderOptions

    async def get_session(self, headers: Mapping[str, str]) -> Any | None:
        ...


class AuthService:
    """
    Injectable access to the provider instance.

    Usage in routes:
        async def my_route(auth: AuthService = Depends(get_auth_service)):
            await auth.api.get_session(...)
    """

    def __init__(self, provider: AuthProvider):
        self._provider = provider

    @property
    def api(self) -> AuthProvider:
        """The provider's callable surface (plugins may extend it)."""
        return self._provider

    @property
    def instance(self) -> AuthProvider:
        """The complete provider instance."""
        return self._provider
