"""
Structured error types for workpool.

Every error raised by workpool itself extends :class:`WorkpoolError` and
carries a category, an optional :class:`ErrorContext` and an optional
chained cause. Handler failures are *not* raised through this hierarchy:
they travel inside result records (see :mod:`workpool.execution.results`).

Manifesto:
    - **Fail fast on misuse:** Bad worker counts and timeouts are rejected
      at construction, never at first use.
    - **Typed lifecycle errors:** Calling ``start()`` twice or ``enqueue()``
      before ``start()`` raises :class:`ProcessorStateError`.
    - **Cancellation is observable, not thrown:** :class:`ContextCancelledError`
      and :class:`DeadlineExceededError` are what ``Context.err()`` returns;
      handlers decide whether to raise them.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                      WorkpoolError                           │
        │            (category, context, cause)                        │
        ├─────────────────────────────────────────────────────────────┤
        │  ConfigError            ProcessorStateError                  │
        │    InvalidConfigError   (STATE)                              │
        │      InvalidWorkerCountError                                 │
        │                                                              │
        │  ConduitClosedError     ContextCancelledError                │
        │  (CHANNEL)                DeadlineExceededError              │
        │                                                              │
        │  ValidationError                                             │
        │    MergeError                                                │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> err = InvalidWorkerCountError(0)
    >>> err.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> isinstance(err, ValueError)
    True

    >>> err = ProcessorStateError("not started").with_context(processor="ingest")
    >>> err.context.processor
    'ingest'

Tags:
    error-handling, exception-hierarchy, error-context, workpool

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and logging."""

    CONFIG = "CONFIG"             # Bad worker count, bad timeout
    STATE = "STATE"               # Lifecycle misuse
    CANCELLED = "CANCELLED"       # Context cancelled by caller
    TIMEOUT = "TIMEOUT"           # Context deadline elapsed
    CHANNEL = "CHANNEL"           # Conduit misuse
    VALIDATION = "VALIDATION"     # Payload shape errors
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        processor: Name of the job processor or batch
        worker_id: Worker that observed the error
        operation: Operation being performed (``start``, ``enqueue``, ...)
        metadata: Additional key-value pairs
    """

    processor: str | None = None
    worker_id: int | None = None
    operation: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ("processor", "worker_id", "operation"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class WorkpoolError(Exception):
    """
    Base exception for all workpool errors.

    Subclasses set ``default_category`` to classify themselves. Pass
    ``cause=`` when wrapping another exception so tracebacks keep the
    original.

    Examples:
        >>> error = WorkpoolError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["error_type"]
        'WorkpoolError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> WorkpoolError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ProcessorStateError("not started").with_context(
                processor="ingest", operation="enqueue"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(WorkpoolError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError, ValueError):
    """A configuration value is out of range."""

    pass


class InvalidWorkerCountError(InvalidConfigError):
    """Worker count must be a positive integer."""

    def __init__(self, workers: Any, **kwargs: Any):
        super().__init__(f"workers must be a positive integer, got {workers!r}", **kwargs)
        self.workers = workers


# =============================================================================
# LIFECYCLE / CHANNEL ERRORS
# =============================================================================


class ProcessorStateError(WorkpoolError, RuntimeError):
    """Operation is not valid in the processor's current state."""

    default_category = ErrorCategory.STATE


class ConduitClosedError(WorkpoolError):
    """Send on, or close of, an already-closed conduit."""

    default_category = ErrorCategory.CHANNEL

    def __init__(self, message: str = "conduit is closed", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# BATCH ERRORS
# =============================================================================


class InputSourceError(WorkpoolError):
    """The batch input iterable raised before it was exhausted.

    The original exception is kept as ``cause``. ``results`` holds the
    records produced for the inputs that were fed before the failure.
    """

    default_category = ErrorCategory.UNKNOWN

    def __init__(self, message: str, *, results: list[Any] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.results = list(results or [])


# =============================================================================
# CANCELLATION
# =============================================================================


class ContextCancelledError(WorkpoolError):
    """The context was cancelled before the operation finished."""

    default_category = ErrorCategory.CANCELLED

    def __init__(self, message: str = "context cancelled", **kwargs: Any):
        super().__init__(message, **kwargs)


class DeadlineExceededError(ContextCancelledError, TimeoutError):
    """The context deadline elapsed.

    Inherits from built-in TimeoutError for broad exception handling.
    """

    default_category = ErrorCategory.TIMEOUT

    def __init__(self, message: str = "context deadline exceeded", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# PAYLOAD ERRORS
# =============================================================================


class ValidationError(WorkpoolError):
    """Payload does not have the expected shape."""

    default_category = ErrorCategory.VALIDATION


class MergeError(ValidationError):
    """Two objects could not be merged."""

    pass


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, WorkpoolError):
        return error.category
    if isinstance(error, TimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
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
]
