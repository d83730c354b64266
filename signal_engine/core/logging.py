"""
Logging Setup - Live Signal Engine
signal_engine/core/logging.py

Configures structlog (key-value events) and the stdlib root logger once,
rendering JSON or console output depending on LOG_FORMAT.
"""

import logging
import sys

import structlog

from signal_engine.config import Settings

_configured = False


def configure_logging(settings: Settings) -> None:
    """Configure structlog and stdlib logging from settings (idempotent)."""
    global _configured
    if _configured:
        return

    level = getattr(logging, settings.LOG_LEVEL)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )

    if settings.LOG_FORMAT == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    _configured = True
