"""Structured logging configuration.

This module configures structlog with a stable JSON event format.
Store and migration modules log named events with keyword fields.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

from core.constants import DEFAULT_LOG_LEVEL

_configured_level: str | None = None


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure structlog processors and level filtering.

    Reconfiguring with the level already in effect is a no-op.

    Args:
        level: Minimum level name, e.g. "info" or "debug".
    """
    global _configured_level
    if _configured_level == level:
        return
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_number(level)),
        cache_logger_on_first_use=False,
    )
    _configured_level = level


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A structlog logger emitting structured JSON events.
    """
    if _configured_level is None:
        configure_logging()
    return structlog.get_logger(name)


def _level_number(level: str) -> int:
    return logging.getLevelNamesMapping()[level.upper()]
