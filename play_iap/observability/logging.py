"""
Structured Logging with Structlog.

Provides JSON-formatted logs with context bound per verification call.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor

from play_iap.config import settings

PACKAGE_LOGGER = "play_iap"


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application-level context to all log entries."""
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.version
    return event_dict


def _resolve_level(level: str | None) -> int:
    name = (level or settings.log_level).upper()
    levels = logging.getLevelNamesMapping()
    if name not in levels:
        raise ValueError(f"Unknown log level: {level or settings.log_level}")
    return levels[name]


def setup_logging(stream: TextIO | None = None, level: str | None = None) -> None:
    """
    Configure structured logging with structlog.

    Records from ``play_iap.*`` loggers go to ``stream`` (stderr by default)
    so that anything a caller prints on stdout stays machine-readable.
    Calling this again replaces the previous handler.

    Logs are formatted as JSON for machine parsing with the following structure:
    {
        "event": "google_play_purchase_verified",
        "level": "info",
        "timestamp": "2025-01-08T12:00:00.123456Z",
        "logger": "play_iap.services.google_play_provider",
        "service": "play-iap",
        "version": "0.1.0",
        "package_name": "com.example.app",
        ...additional context
    }
    """
    log_level = _resolve_level(level)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.handlers = [handler]
    package_logger.setLevel(log_level)
    package_logger.propagate = False

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_level <= logging.DEBUG:
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("google_play_purchase_verified", product_id=product_id)
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Context manager for adding structured logging context.

    Usage:
        with log_context(package_name="com.example.app", product_id="coin_pack"):
            logger.info("verifying_google_play_purchase")

    Nested blocks restore the outer values on exit.
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs
        self.tokens: dict[str, Any] = {}

    def __enter__(self) -> None:
        self.tokens = structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.reset_contextvars(**self.tokens)
