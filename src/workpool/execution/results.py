"""Result records emitted by workers.

Each processed item produces exactly one record, tagged with the id of the
worker that handled it. A handler that raised has its exception stored in
``error`` and ``value`` left as ``None``; nothing is raised across the
worker boundary.

Example::

    for record in processor.results():
        if record.ok:
            save(record.value)
        else:
            logger.warning("item_failed", **record.to_dict())
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from workpool.core.errors import categorize_error

T = TypeVar("T")
R = TypeVar("R")


def _error_dict(error: BaseException | None) -> dict[str, Any] | None:
    if error is None:
        return None
    return {
        "error_type": error.__class__.__name__,
        "message": str(error),
        "category": categorize_error(error).value,
    }


@dataclass(frozen=True, slots=True)
class JobResult(Generic[T]):
    """Outcome of one job-processor handler call."""

    worker_id: int
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging."""
        return {
            "worker_id": self.worker_id,
            "value": self.value,
            "error": _error_dict(self.error),
        }


@dataclass(frozen=True, slots=True)
class FanOutResult(Generic[T]):
    """Outcome of one fan-out task.

    Carries the original ``input`` so callers can correlate results,
    which arrive in completion order rather than input order.
    """

    worker_id: int
    input: Any
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging."""
        return {
            "worker_id": self.worker_id,
            "input": self.input,
            "value": self.value,
            "error": _error_dict(self.error),
        }


def partition_results(results: Iterable[R]) -> tuple[list[R], list[R]]:
    """Split records into ``(succeeded, failed)``, preserving order.

    Works for both :class:`JobResult` and :class:`FanOutResult`.

    Example:
        >>> ok, failed = partition_results(run_batch(None, items, 4, 5.0, fetch))
        >>> retry = [r.input for r in failed]
    """
    succeeded: list[R] = []
    failed: list[R] = []
    for record in results:
        (succeeded if record.ok else failed).append(record)  # type: ignore[attr-defined]
    return succeeded, failed


__all__ = ["JobResult", "FanOutResult", "partition_results"]
