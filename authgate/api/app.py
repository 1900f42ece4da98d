"""
FastAPI wiring for an auth provider.

`AuthModule` does the one-time setup an app needs before serving:
provider hooks, CORS for the provider's trusted origins, the provider's
own endpoints under its base path, and error rendering.

Usage:
    app = FastAPI()
    AuthModule(provider, hook_handlers=[SignUpHooks()]).configure(app)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from authgate.auth.errors import install_exception_handlers
from authgate.config import Settings, get_settings
from authgate.hooks.builtin import ProviderErrorHook
from authgate.hooks.composer import HookComposer
from authgate.hooks.registry import HookRegistry
from authgate.integrations.sentry import init_sentry
from authgate.provider import AuthProvider, AuthService

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "PUT", "DELETE"]


def normalize_base_path(path: str | None) -> str:
    """Leading slash, no trailing slash: "api/auth/" -> "/api/auth"."""
    path = path or "/api/auth"
    if not path.startswith("/"):
        path = f"/{path}"
    path = path.rstrip("/")
    if not path:
        raise ValueError("Auth base path cannot be the root path")
    return path


class AuthModule:
    """Connects one provider to one FastAPI app."""

    def __init__(
        self,
        provider: AuthProvider,
        *,
        hook_handlers: Iterable[Any] = (),
        registry: HookRegistry | None = None,
        settings: Settings | None = None,
    ):
        self.provider = provider
        self.settings = settings or get_settings()
        self.registry = registry if registry is not None else HookRegistry()
        self.registry.register_instances(hook_handlers)
        self.composer = HookComposer(self.registry)
        self._error_hook_registered = False
        self.service = AuthService(provider)
        self.base_path = normalize_base_path(provider.options.base_path or self.settings.auth_base_path)

    @property
    def trusted_origins(self) -> Any:
        origins = self.provider.options.trusted_origins
        if origins is None:
            origins = self.settings.trusted_origins_list or None
        return origins

    def configure(self, app: FastAPI) -> FastAPI:
        """Set up `app`; call before it starts serving."""
        if getattr(app.state, "auth_module", None) is self:
            return app

        # Validated before anything on the app or provider changes
        origins = self._cors_origins()

        app.state.auth_provider = self.provider
        app.state.auth_service = self.service
        app.state.auth_module = self

        rethrow = not self.settings.disable_exception_filter
        install_exception_handlers(app, provider_errors=rethrow)
        if rethrow and not self._error_hook_registered:
            # Last in the after chain, so user hooks still see the result
            self.registry.register_instances([ProviderErrorHook()])
            self._error_hook_registered = True

        self.composer.install(self.provider)
        if origins:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=origins,
                allow_methods=CORS_METHODS,
                allow_credentials=True,
            )

        handler = getattr(self.provider, "handler", None)
        if handler is not None:
            app.mount(self.base_path, handler)

        init_sentry(self.settings)
        logger.info(f"AuthModule initialized provider on '{self.base_path}/*'")
        return app

    def _cors_origins(self) -> list[str]:
        """Origins to allow through CORS; empty when CORS is off."""
        if self.settings.disable_trusted_origins_cors:
            return []

        origins = self.trusted_origins
        if not origins:
            return []
        if callable(origins):
            raise ValueError(
                "Function-based trusted origins are not supported. "
                "Use a list of origins or set disable_trusted_origins_cors."
            )
        return list(origins)


def get_auth_service(request: Request) -> AuthService:
    """FastAPI dependency for the configured `AuthService`."""
    return request.app.state.auth_service
