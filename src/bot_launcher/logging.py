"""Structured logging for the launcher.

Launcher output goes to stderr so that it never interleaves with what the
artifact prints on stdout. Every event of a launch carries the launcher's
pid and version, bound once through ``structlog.contextvars``.
"""

import logging
import os
import sys

import structlog

from bot_launcher.config import get_settings


def setup_logging() -> None:
    """Configure structlog and stdlib logging from the launcher settings."""
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    renderer: list[structlog.typing.Processor]
    if settings.is_development:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]
    else:
        renderer = [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # httpx and httpcore log through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def bind_launch_context(version: str) -> None:
    """Attach the launcher's pid and version to every following event."""
    structlog.contextvars.bind_contextvars(pid=os.getpid(), launcher_version=version)


def clear_launch_context() -> None:
    structlog.contextvars.unbind_contextvars("pid", "launcher_version")


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)
