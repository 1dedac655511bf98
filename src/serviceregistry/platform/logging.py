"""
Service Registry Structured Logging

Configures structured JSON logging using structlog.
"""

import logging
import sys

import structlog

from serviceregistry.platform.config import settings


def configure_logging() -> None:
    """
    Configure structured logging for the application.

    structlog loggers and plain ``logging.getLogger`` loggers share one
    renderer, so records from the core modules also carry the context bound
    with ``bind_actor``.
    """

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    shared_processors = [
        # Carries the acting user bound per request
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    # Render to JSON in production, console in development
    if settings.APP_ENV == "production":
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
        )
    )
    logging.basicConfig(handlers=[handler], level=log_level, force=True)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_actor(display_name: str) -> None:
    """
    Attach the acting user to every log line emitted in the current context.

    Request handlers call this once the actor is known, so that messages like
    "Deleted connection '3'" carry ``user='jdoe'`` without the core having to
    look the actor up itself.
    """
    structlog.contextvars.bind_contextvars(user=display_name)
