# =============================================================================
# Sentry Error Tracking Integration
# =============================================================================
#
# Setup:
#   1. Create a Python project at sentry.io
#   2. Copy DSN to .env: SENTRY_DSN=https://...@sentry.io/...
#
# Usage:
#   init_sentry() is called from the app lifespan (memehub/api/app.py).
#   Orphaned assets are reported with capture_message() so they can be
#   swept later (see memehub/media/orphans.py).
#
# =============================================================================

import logging

import sentry_sdk
from fastapi import HTTPException
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from memehub.config import Settings, get_settings

logger = logging.getLogger(__name__)


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

        # Sample 10% of transactions in prod
        traces_sample_rate=0.1 if settings.is_production else 1.0,

        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],

        send_default_pii=False,

        before_send=_filter_events,
        before_send_transaction=_filter_transactions,
    )

    logger.info(f"Sentry initialized for {settings.environment}")
    return True


def _filter_events(event: dict, hint: dict) -> dict | None:
    """Filter out expected errors and scrub credentials."""
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]

        # Not found, auth failures, locked memes, validation errors
        if isinstance(exc_value, HTTPException):
            if exc_value.status_code in (400, 401, 403, 404, 422, 423):
                return None

    if "request" in event:
        headers = event["request"].get("headers", {})
        for key in list(headers.keys()):
            if key.lower() in ("authorization", "cookie"):
                headers[key] = "[Filtered]"

    return event


def _filter_transactions(event: dict, hint: dict) -> dict | None:
    """Skip health checks and static files."""
    transaction = event.get("transaction", "")

    if transaction in ("/health", "/healthz"):
        return None
    if transaction.startswith("/uploads"):
        return None

    return event


def capture_message(message: str, level: str = "info", **context) -> str | None:
    """
    Capture a message to Sentry.

    Falls back to the log when Sentry is not initialized.
    Levels: fatal, error, warning, info, debug
    """
    if not sentry_sdk.get_client().is_active():
        logger.log(getattr(logging, level.upper(), logging.INFO), f"{message} {context}")
        return None

    with sentry_sdk.new_scope() as scope:
        for key, value in context.items():
            scope.set_extra(key, value)
        return sentry_sdk.capture_message(message, level=level)
