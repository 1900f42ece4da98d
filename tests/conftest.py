"""
Shared fixtures: an in-memory provider and a small app wired to it.
"""

from __future__ import annotations

from typing import Any, Mapping

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from authgate.api.app import AuthModule
from authgate.auth.policies import current_session, optional, public, require
from authgate.auth.session import Session
from authgate.config import Settings
from authgate.provider import HookContext, ProviderOptions


# =============================================================================
# Fake provider
# =============================================================================


class FakeProvider:
    """
    In-memory provider.

    Bearer tokens map to sessions; operations run through `options.hooks`
    the way a real provider runs its endpoints.
    """

    def __init__(self, hooks: Any = None, trusted_origins: Any = None, base_path: str = "/api/auth"):
        self.options = ProviderOptions(
            base_path=base_path,
            trusted_origins=trusted_origins,
            hooks=hooks,
        )
        self.sessions: dict[str, dict[str, Any]] = {}
        self.session_calls: list[dict[str, str]] = []
        self.error: Exception | None = None

        self.handler = FastAPI()

        @self.handler.post("/sign-up/email")
        async def sign_up(request: Request):
            return await self.run("/sign-up/email", body=await request.json())

    def sign_in(self, token: str, user: dict[str, Any]) -> None:
        self.sessions[token] = {"user": user, "session": {"token": token, "userId": user.get("id")}}

    async def get_session(self, headers: Mapping[str, str]) -> dict[str, Any] | None:
        self.session_calls.append(dict(headers))
        if self.error is not None:
            raise self.error
        token = headers.get("authorization", "").removeprefix("Bearer ").strip()
        return self.sessions.get(token)

    async def run(self, path: str, body: Any = None, result: Any = None) -> Any:
        ctx = HookContext(path=path, body=body)
        hooks = self.options.hooks

        before = hooks.get("before") if hooks is not None else None
        if before is not None:
            await before(ctx)

        ctx.returned = result if result is not None else {"ok": True, "path": path}

        after = hooks.get("after") if hooks is not None else None
        if after is not None:
            await after(ctx)
        return ctx.returned


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    """Settings that ignore any local .env."""
    return Settings(_env_file=None)


@pytest.fixture
def provider():
    """Provider with a plain user, an admin and a multi-role editor."""
    provider = FakeProvider()
    provider.sign_in("user-token", {"id": "u1", "role": "user", "email": "u1@example.com"})
    provider.sign_in("admin-token", {"id": "u2", "role": "admin"})
    provider.sign_in("editor-token", {"id": "u3", "role": ["editor", "admin"]})
    provider.sign_in("odd-token", {"id": "u4", "role": 42})
    return provider


def _user_id(session: Session | None) -> str | None:
    return session.user.id if session else None


def build_app(provider: FakeProvider, settings: Settings, **module_kwargs) -> FastAPI:
    app = FastAPI()
    AuthModule(provider, settings=settings, **module_kwargs).configure(app)

    @app.get("/public")
    async def get_public(session: Session | None = Depends(public())):
        return {"data": "public ok", "user": _user_id(session)}

    @app.get("/optional")
    async def get_optional(session: Session | None = Depends(optional())):
        return {"authenticated": session is not None, "user": _user_id(session)}

    @app.get("/protected")
    async def get_protected(
        session: Session = Depends(require()),
        attached: Session | None = Depends(current_session),
    ):
        return {"user": _user_id(session), "same": attached is session}

    @app.get("/admin")
    async def get_admin(session: Session = Depends(require("admin"))):
        return {"data": "admin ok"}

    return app


@pytest.fixture
def app(provider, settings):
    return build_app(provider, settings)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
