"""
Auth errors and their translation into HTTP responses.

Taxonomy:
- UnauthorizedError: no session where one is required (401)
- ForbiddenError: session present, role mismatch (403)
- ProviderError: whatever the provider raised, passed through untouched
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from authgate.provider import ProviderError

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base class for access denials produced by the policy evaluator."""

    status_code: int = 400
    code: str = "AUTH_ERROR"
    message: str = "Authentication error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class UnauthorizedError(AuthError):
    status_code = 401
    code = "UNAUTHORIZED"
    message = "Unauthorized"


class ForbiddenError(AuthError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Insufficient permissions"


# =============================================================================
# FastAPI exception handlers
# =============================================================================


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render a denial as `{"code", "message"}` with its status."""
    logger.debug(f"{request.method} {request.url.path} denied: {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    """Render a provider failure with the provider's own status and message."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"statusCode": exc.status_code, "message": exc.message},
    )


def install_exception_handlers(app: FastAPI, *, provider_errors: bool = True) -> None:
    """Register the auth handlers on an app."""
    app.add_exception_handler(AuthError, auth_error_handler)
    if provider_errors:
        app.add_exception_handler(ProviderError, provider_error_handler)
