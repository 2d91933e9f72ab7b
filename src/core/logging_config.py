"""Structured logging configuration.

This module initializes structlog with a stable JSON event format on
stderr, keeping stdout for command results.
The minimum level comes from ``SCRAPER_LOG_LEVEL`` (default ``info``).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

from core.constants import DEFAULT_LOG_LEVEL

_CONFIGURED = False


def configure_logging(level_name: str | None = None) -> None:
    """Configure structlog processors and the minimum level.

    Args:
        level_name: Optional level name; falls back to ``SCRAPER_LOG_LEVEL``.
    """
    global _CONFIGURED
    raw_level = level_name or os.getenv("SCRAPER_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    level = logging.getLevelName(raw_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A structlog bound logger emitting JSON events.
    """
    if not _CONFIGURED:
        configure_logging()
    return structlog.get_logger(name)
