"""Logging configuration for the Payments domain."""

import logging
import os

import structlog

logger = structlog.get_logger(__name__)

# Suppress noisy library loggers
logging.getLogger("protean").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure structlog for the process.

    LOG_LEVEL and LOG_FORMAT ("json" or "console") are read from the
    environment when the arguments are not given.
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if json_logs is None:
        json_logs = os.environ.get("LOG_FORMAT", "console") == "json"

    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name, logging.INFO))

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        cache_logger_on_first_use=True,
    )
