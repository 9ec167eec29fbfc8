"""Shared foundations: cancellation contexts, errors, logging, settings.

MODULE MAP
──────────
  context.py   ─ Signal, Context, background / with_cancel / with_timeout
  errors.py    ─ WorkpoolError hierarchy + ErrorCategory
  logging.py   ─ structlog configuration, get_logger, LogContext
  settings.py  ─ WorkpoolSettings (pydantic-settings) + get_settings
  objects.py   ─ dict payload helpers (merge_objects, add_metadata, ...)
"""

from .context import Context, Signal, background, with_cancel, with_deadline, with_timeout
from .errors import (
    ConduitClosedError,
    ConfigError,
    ContextCancelledError,
    DeadlineExceededError,
    InputSourceError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    InvalidWorkerCountError,
    MergeError,
    ProcessorStateError,
    ValidationError,
    WorkpoolError,
    categorize_error,
)
from .logging import LogContext, configure_logging, configure_logging_from_settings, get_logger
from .objects import add_metadata, append_to_map, merge_objects, to_list, to_mapping
from .settings import WorkpoolSettings, get_settings

__all__ = [
    "Signal",
    "Context",
    "background",
    "with_cancel",
    "with_deadline",
    "with_timeout",
    "ErrorCategory",
    "ErrorContext",
    "WorkpoolError",
    "ConfigError",
    "InvalidConfigError",
    "InvalidWorkerCountError",
    "ProcessorStateError",
    "ConduitClosedError",
    "ContextCancelledError",
    "DeadlineExceededError",
    "InputSourceError",
    "ValidationError",
    "MergeError",
    "categorize_error",
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "LogContext",
    "WorkpoolSettings",
    "get_settings",
    "to_list",
    "to_mapping",
    "append_to_map",
    "add_metadata",
    "merge_objects",
]
