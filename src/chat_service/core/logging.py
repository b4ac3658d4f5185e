"""Structured logging setup using structlog."""

import logging
import sys
from typing import Any

import structlog

from chat_service.core.config import settings


def configure_logging(log_level: str | None = None) -> None:
    """Configure structured logging.

    Args:
        log_level: Log level name. Defaults to the configured settings level.
    """
    level = getattr(logging, (log_level or settings.log_level).upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger."""
    return structlog.get_logger(name)
