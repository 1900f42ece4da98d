"""
End-to-end tests: guards, hooks and wiring through a real FastAPI app.
"""

import pytest
from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.testclient import TestClient

from authgate.api.app import AuthModule, normalize_base_path
from authgate.auth.context import InvocationContext
from authgate.auth.policies import AccessGuard, RoutePolicy, session_from
from authgate.hooks.registry import after_hook, before_hook, hook_container
from authgate.provider import AuthService, ProviderError

from conftest import FakeProvider, build_app


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Route policies over HTTP
# =============================================================================


class TestRestAuth:
    def test_public_without_session(self, client):
        response = client.get("/public")
        assert response.status_code == 200
        assert response.json() == {"data": "public ok", "user": None}

    def test_public_still_sees_session(self, client):
        response = client.get("/public", headers=bearer("user-token"))
        assert response.json()["user"] == "u1"

    def test_optional_without_session(self, client):
        response = client.get("/optional")
        assert response.status_code == 200
        assert response.json() == {"authenticated": False, "user": None}

    def test_optional_with_session(self, client):
        response = client.get("/optional", headers=bearer("user-token"))
        assert response.json() == {"authenticated": True, "user": "u1"}

    def test_protected_without_session(self, client):
        response = client.get("/protected")
        assert response.status_code == 401
        assert response.json() == {"code": "UNAUTHORIZED", "message": "Unauthorized"}

    def test_protected_with_session(self, client):
        response = client.get("/protected", headers=bearer("user-token"))
        assert response.status_code == 200
        assert response.json() == {"user": "u1", "same": True}

    def test_admin_with_wrong_role(self, client):
        response = client.get("/admin", headers=bearer("user-token"))
        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "FORBIDDEN"
        assert "insufficient permissions" in body["message"].lower()

    def test_admin_with_role(self, client):
        response = client.get("/admin", headers=bearer("admin-token"))
        assert response.status_code == 200
        assert response.json() == {"data": "admin ok"}

    def test_admin_with_role_list(self, client):
        response = client.get("/admin", headers=bearer("editor-token"))
        assert response.status_code == 200

    def test_malformed_role_forbidden(self, client):
        response = client.get("/admin", headers=bearer("odd-token"))
        assert response.status_code == 403

    def test_one_provider_call_per_request(self, client, provider):
        client.get("/protected", headers=bearer("user-token"))
        assert len(provider.session_calls) == 1
        assert provider.session_calls[0]["authorization"] == "Bearer user-token"

    def test_stacked_guards_share_one_provider_call(self, app, provider):
        @app.get("/stacked", dependencies=[Depends(AccessGuard())])
        async def stacked(session=Depends(AccessGuard(RoutePolicy.required(["admin"])))):
            return {"user": session.user.id}

        with TestClient(app) as client:
            response = client.get("/stacked", headers=bearer("admin-token"))

        assert response.json() == {"user": "u2"}
        assert len(provider.session_calls) == 1

    def test_provider_error_rendered(self, client, provider):
        provider.error = ProviderError(503, "Provider unavailable")
        response = client.get("/protected")
        assert response.status_code == 503
        assert response.json() == {"statusCode": 503, "message": "Provider unavailable"}


# =============================================================================
# GraphQL-style resolvers
# =============================================================================


class TestGraphQLAuth:
    @pytest.fixture
    def client(self, provider, settings):
        app = build_app(provider, settings)
        optional_guard = AccessGuard(RoutePolicy.optional())
        protected_guard = AccessGuard()

        # Stand-in for a GraphQL endpoint: resolvers receive a context
        # wrapping the request, not the request itself.
        @app.post("/graphql")
        async def graphql(request: Request, query: str):
            ctx = InvocationContext.graphql({"request": request})
            guard = protected_guard if query == "protectedUserId" else optional_guard
            session = await guard.check(ctx)
            attached = session_from(ctx)
            return {
                "authenticated": session is not None,
                "userId": attached.user.id if attached else None,
            }

        with TestClient(app) as client:
            yield client

    def test_optional_anonymous(self, client):
        response = client.post("/graphql", params={"query": "optionalAuthenticated"})
        assert response.json() == {"authenticated": False, "userId": None}

    def test_optional_signed_in(self, client):
        response = client.post(
            "/graphql", params={"query": "optionalAuthenticated"}, headers=bearer("admin-token")
        )
        assert response.json() == {"authenticated": True, "userId": "u2"}

    def test_protected_anonymous(self, client):
        response = client.post("/graphql", params={"query": "protectedUserId"})
        assert response.status_code == 401


# =============================================================================
# Websockets
# =============================================================================


class TestWebSocketAuth:
    @pytest.fixture
    def client(self, app):
        guard = AccessGuard()

        @app.websocket("/ws")
        async def ws(websocket: WebSocket, session=Depends(guard.websocket)):
            await websocket.accept()
            await websocket.send_json({"user": session.user.id})
            await websocket.close()

        with TestClient(app) as client:
            yield client

    def test_rejects_anonymous(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws"):
                pass
        assert exc_info.value.code == 1008

    def test_accepts_session(self, client):
        with client.websocket_connect("/ws", headers=bearer("user-token")) as websocket:
            assert websocket.receive_json() == {"user": "u1"}


# =============================================================================
# Hooks through the provider's own endpoints
# =============================================================================


class HookTracker:
    def __init__(self):
        self.before_calls = 0
        self.after_calls = 0


@hook_container
class SignUpBeforeHook:
    def __init__(self, tracker):
        self.tracker = tracker

    @before_hook("/sign-up/email")
    async def handle(self, ctx):
        self.tracker.before_calls += 1


@hook_container
class SignUpAfterHook:
    def __init__(self, tracker):
        self.tracker = tracker

    @after_hook("/sign-up/email")
    async def handle(self, ctx):
        self.tracker.after_calls += 1


class TestHooksE2E:
    def test_hooks_run_on_matching_route(self, provider, settings):
        tracker = HookTracker()
        app = build_app(
            provider,
            settings,
            hook_handlers=[SignUpBeforeHook(tracker), SignUpAfterHook(tracker)],
        )

        with TestClient(app) as client:
            response = client.post(
                "/api/auth/sign-up/email",
                json={"name": "Ada", "email": "ada@example.com", "password": "secret-pass"},
            )

        assert response.status_code == 200
        assert response.json() == {"ok": True, "path": "/sign-up/email"}
        assert tracker.before_calls == 1
        assert tracker.after_calls == 1

    @pytest.mark.asyncio
    async def test_existing_provider_hooks_survive(self, settings):
        calls = []

        async def existing(ctx):
            calls.append(ctx.path)

        provider = FakeProvider(hooks={"after": existing})
        tracker = HookTracker()
        build_app(provider, settings, hook_handlers=[SignUpAfterHook(tracker)])

        await provider.run("/sign-up/email")
        assert calls == ["/sign-up/email"]
        assert tracker.after_calls == 1


# =============================================================================
# Wiring
# =============================================================================


class TestAuthModule:
    def test_state(self, app, provider):
        assert app.state.auth_provider is provider
        assert isinstance(app.state.auth_service, AuthService)
        assert app.state.auth_service.instance is provider
        assert app.state.auth_service.api is provider

    def test_configure_twice_is_noop(self, provider, settings):
        app = FastAPI()
        module = AuthModule(provider, settings=settings)
        module.configure(app)
        module.configure(app)
        assert len(module.registry) == 1  # builtin provider-error hook

    def test_exception_filter_disabled(self, provider, settings):
        settings.disable_exception_filter = True
        module = AuthModule(provider, settings=settings)
        module.configure(FastAPI())
        assert len(module.registry) == 0

    def test_cors_for_trusted_origins(self, settings):
        provider = FakeProvider(trusted_origins=["http://localhost:3000"])
        app = FastAPI()
        AuthModule(provider, settings=settings).configure(app)

        @app.get("/ping")
        async def ping():
            return {}

        with TestClient(app) as client:
            response = client.options(
                "/ping",
                headers={
                    "Origin": "http://localhost:3000",
                    "Access-Control-Request-Method": "GET",
                },
            )
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_function_origins_rejected(self, settings):
        provider = FakeProvider(trusted_origins=lambda request: ["http://a"])
        with pytest.raises(ValueError):
            AuthModule(provider, settings=settings).configure(FastAPI())

    def test_rejected_configure_leaves_provider_and_app_untouched(self, settings):
        provider = FakeProvider(trusted_origins=lambda request: ["http://a"])
        app = FastAPI()
        tracker = HookTracker()
        module = AuthModule(provider, settings=settings, hook_handlers=[SignUpAfterHook(tracker)])

        with pytest.raises(ValueError):
            module.configure(app)

        assert provider.options.hooks is None
        assert not hasattr(app.state, "auth_provider")
        assert len(module.registry) == 1

    def test_second_app_adds_no_extra_error_hook(self, provider, settings):
        module = AuthModule(provider, settings=settings)
        module.configure(FastAPI())
        module.configure(FastAPI())
        assert len(module.registry) == 1

    def test_function_origins_with_cors_disabled(self, settings):
        settings.disable_trusted_origins_cors = True
        provider = FakeProvider(trusted_origins=lambda request: ["http://a"])
        AuthModule(provider, settings=settings).configure(FastAPI())

    def test_settings_base_path_fallback(self, settings):
        settings.auth_base_path = "auth/"
        module = AuthModule(FakeProvider(base_path=None), settings=settings)
        assert module.base_path == "/auth"


class TestNormalizeBasePath:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("/api/auth", "/api/auth"),
            ("api/auth", "/api/auth"),
            ("/api/auth/", "/api/auth"),
            (None, "/api/auth"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_base_path(raw) == expected

    def test_root_rejected(self):
        with pytest.raises(ValueError):
            normalize_base_path("/")
