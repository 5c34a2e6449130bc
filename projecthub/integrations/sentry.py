# =============================================================================
# Sentry Error Tracking Integration
# =============================================================================
#
# Setup:
#   1. Create a Python project at sentry.io
#   2. Copy DSN to .env: SENTRY_DSN=https://...@sentry.io/...
#
# Usage:
#   init_sentry(settings) is called from the app lifespan. Without a DSN
#   it does nothing and the capture helpers fall back to logging.
#
# =============================================================================

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from projecthub.config import Settings
from projecthub.errors import AppError, UpstreamFailure

logger = logging.getLogger(__name__)

_SENSITIVE_HEADERS = ("authorization", "cookie", "set-cookie", "apikey", "x-api-key")


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry error tracking.

    Returns True if initialized, False if skipped.
    """
    if not settings.sentry_dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,

        # Performance monitoring (sample 10% of transactions in prod)
        traces_sample_rate=0.1 if settings.is_production else 1.0,

        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],

        # Session tokens and credentials must never leave the process
        send_default_pii=False,

        before_send=_filter_events,
        before_send_transaction=_filter_transactions,
    )

    logger.info(f"Sentry initialized for {settings.environment}")
    return True


def _filter_events(event: dict, hint: dict) -> dict | None:
    """Drop expected client errors and scrub auth material."""
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]

        # 4xx taxonomy errors are the caller's problem, not ours
        if isinstance(exc_value, AppError) and not isinstance(exc_value, UpstreamFailure):
            return None

    request = event.get("request")
    if request and "headers" in request:
        headers = request["headers"]
        for key in list(headers.keys()):
            if key.lower() in _SENSITIVE_HEADERS:
                headers[key] = "[Filtered]"
    if request and "cookies" in request:
        request["cookies"] = "[Filtered]"

    return event


def _filter_transactions(event: dict, hint: dict) -> dict | None:
    """Filter out health checks."""
    if event.get("transaction", "") in ("/health", "health_check"):
        return None
    return event


def capture_exception(error: Exception, **context) -> str | None:
    """
    Capture an exception to Sentry.

    Returns the event ID if captured, None otherwise.
    """
    if not sentry_sdk.get_client().is_active():
        logger.error("Unhandled error (Sentry disabled)", exc_info=error)
        return None

    with sentry_sdk.new_scope() as scope:
        for key, value in context.items():
            scope.set_extra(key, value)
        return sentry_sdk.capture_exception(error)

