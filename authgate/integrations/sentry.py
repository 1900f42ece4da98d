# =============================================================================
# Sentry Error Tracking Integration
# =============================================================================
#
# Setup:
#   Set SENTRY_DSN in the environment (or .env).
#
# Usage:
#   Call init_sentry() at app startup. Every resolved session then tags
#   error reports with the calling user, including on public routes.
#
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from authgate.config import Settings, get_settings

logger = logging.getLogger(__name__)

_SCRUBBED_HEADERS = ("authorization", "cookie", "x-api-key")


def init_sentry(settings: Settings | None = None) -> bool:
    """
    Initialize Sentry error tracking.

    Returns True if initialized, False if skipped.
    """
    settings = settings or get_settings()

    if not settings.sentry_dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        send_default_pii=False,
        before_send=_filter_events,
    )

    logger.info(f"Sentry initialized for {settings.environment}")
    return True


def _filter_events(event: dict, hint: dict) -> dict | None:
    """Drop expected auth denials and scrub credentials."""
    if "exc_info" in hint:
        from authgate.auth.errors import AuthError

        _, exc_value, _ = hint["exc_info"]
        if isinstance(exc_value, AuthError):
            return None

    headers = event.get("request", {}).get("headers")
    if headers:
        for key in list(headers.keys()):
            if key.lower() in _SCRUBBED_HEADERS:
                headers[key] = "[Filtered]"

    return event


def is_enabled() -> bool:
    return sentry_sdk.get_client().is_active()


def set_user(user: Any) -> None:
    """Set the current user context for error reports."""
    if not is_enabled() or user is None:
        return
    attributes = getattr(user, "attributes", {}) or {}
    sentry_sdk.set_user({"id": user.id, "email": attributes.get("email")})
