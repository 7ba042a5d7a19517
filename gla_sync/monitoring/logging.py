"""Structured logging configuration (structlog)."""

from __future__ import annotations

import logging

import structlog

from gla_sync.config import Settings


def configure_logging(settings: Settings) -> None:
    """Configure structlog for worker and CLI processes.

    JSON lines in production; `log_format=text` switches to the console renderer.
    """
    level = logging.getLevelName(settings.log_level)
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
