"""
Monitoring and error tracking setup
"""
import logging
import os
import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

logger = logging.getLogger(__name__)


def init_monitoring() -> bool:
    """
    Initialize Sentry monitoring for the brief workers

    Returns:
        True when Sentry was initialized
    """
    sentry_dsn = os.getenv("SENTRY_DSN")
    environment = os.getenv("ENVIRONMENT", "development")

    if not sentry_dsn:
        logger.warning("Sentry DSN not configured, monitoring disabled")
        return False

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=environment,
        integrations=[
            SqlalchemyIntegration(),
            # Breadcrumbs from INFO, events only from explicit capture calls
            LoggingIntegration(level=logging.INFO, event_level=None),
        ],
        traces_sample_rate=1.0 if environment == "development" else 0.1,
    )
    logger.info(f"Sentry monitoring initialized for {environment}")
    return True


def capture_exception(error: Exception, context: dict = None):
    """
    Capture exception with context

    Args:
        error: Exception to capture
        context: Additional context
    """
    if context:
        sentry_sdk.set_context("brief", context)

    sentry_sdk.capture_exception(error)


def capture_message(message: str, level: str = "info"):
    """
    Capture custom message

    Args:
        message: Message to capture
        level: Log level (info, warning, error)
    """
    sentry_sdk.capture_message(message, level=level)
