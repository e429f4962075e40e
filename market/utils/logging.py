"""Logging configuration: structlog on top of the standard library handlers."""

import logging
import sys
from typing import TextIO

import structlog

from market.utils.settings import LOG_FORMAT, LOG_LEVEL

_configured = False


def setup_stdlib_logging(level: str, stream: TextIO | None = None) -> None:
    """One stdout handler on the ``market`` logger; structlog renders the line."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))

    market_logger = logging.getLogger("market")
    market_logger.handlers = [handler]
    market_logger.setLevel(level)


def setup_structlog(fmt: str) -> None:
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if fmt == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # not cached, so structlog.testing.capture_logs sees module loggers
        cache_logger_on_first_use=False,
    )


def configure_logging(level: str | None = None, fmt: str | None = None, stream: TextIO | None = None) -> None:
    """Configure all logging for the application."""
    global _configured

    setup_stdlib_logging(level or LOG_LEVEL, stream)
    setup_structlog(fmt or LOG_FORMAT)
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)
