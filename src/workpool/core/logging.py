"""
Structured logging for workpool.

Configures structlog once per process and hands out loggers that emit
dotted event names with key/value fields, e.g.::

    logger = get_logger(__name__)
    logger.info("job.start", processor="ingest", workers=4)

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="workpool")
            │
            ▼
        structlog processor chain
          1. TimeStamper(fmt="iso")
          2. merge_contextvars          (bind_context / LogContext)
          3. add_log_level
          4. _add_service_metadata
          5. JSONRenderer  (not a tty)  |  ConsoleRenderer (tty)

Features:
    - JSON output for log aggregation, colored console for development
    - Context propagation through ``structlog.contextvars``
    - Service-level metadata on every line

Guardrails:
    - Worker threads inherit no contextvars from the thread that started
      them; bind per-processor fields explicitly on the logger instead.
    - Call ``configure_logging`` once at startup; ``get_logger`` is cheap.

Tags:
    logging, structlog, observability, workpool
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from workpool.core.settings import WorkpoolSettings, get_settings

_SERVICE_NAME = "workpool"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "workpool",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs

    Example:
        configure_logging(level="DEBUG", service="ingest-worker")
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging_from_settings(settings: WorkpoolSettings | None = None) -> None:
    """Configure logging from ``WORKPOOL_LOG_LEVEL`` and ``WORKPOOL_LOG_JSON``."""
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    The name is bound lazily as ``logger_name`` so it survives a later
    ``configure_logging`` call.

    Args:
        name: Logger name (usually __name__)
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name, logger_name=name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs on this thread."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(batch="nightly", run_id="abc123"):
            results = run_batch(ctx, items, 4, 10.0, handler)
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
