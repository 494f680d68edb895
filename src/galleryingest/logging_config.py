"""
Structured logging for galleryingest.

Every module logs snake_case events through ``get_logger(__name__)``; the
helpers below give audit, timing and failure records a fixed shape.
"""

import logging
import os
import sys
from typing import Any

import structlog

_DEVELOPMENT_ENVIRONMENTS = ("development", "dev", "local", "test")


def configure_structured_logging() -> None:
    """
    Route structlog through the stdlib root logger.

    LOG_LEVEL picks the level (INFO when unset or unknown). Development and test
    environments render for the console, anything else as one JSON object per line.
    """
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO
    environment = os.getenv("ENVIRONMENT", "development").lower()
    is_dev = environment in _DEVELOPMENT_ENVIRONMENTS

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(level)

    renderer: Any = (
        structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        if is_dev
        else structlog.processors.JSONRenderer(ensure_ascii=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger("galleryingest.logging").info(
        "logging_configured", log_level=logging.getLevelName(level), environment=environment
    )


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """Timing of one pipeline step, in seconds."""
    get_logger("galleryingest.performance").info(
        "performance_metric", operation=operation, duration_seconds=round(duration, 4), **context
    )


def log_user_action(user_id: str, action: str, **context: Any) -> None:
    """Audit record of an administrator action."""
    get_logger("galleryingest.user_actions").info("user_action", user_id=user_id, action=action, **context)


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """Log an exception with its type, message and traceback."""
    get_logger("galleryingest.errors").error(
        "error_occurred",
        error_type=type(error).__name__,
        error_message=str(error),
        exc_info=error,
        **(context or {}),
    )


def log_security_event(event_type: str, user_id: str | None = None, **context: Any) -> None:
    get_logger("galleryingest.security").warning("security_event", event_type=event_type, user_id=user_id, **context)
