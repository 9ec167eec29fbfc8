"""
workpool - Bounded-parallelism execution primitives.

Two shapes for running a handler over many items on worker threads:

- ``JobProcessor``: long-lived pool, fed with ``enqueue`` and drained via
  ``results()`` until ``stop()``.
- ``run_batch``: one-shot fan-out over a fixed batch with a per-task
  timeout.

Both hand every handler call a cooperative cancellation ``Context`` and
report one result record per item.
"""

__version__ = "0.1.0"

from workpool.core.context import (  # noqa: E402
    Context,
    background,
    with_cancel,
    with_deadline,
    with_timeout,
)
from workpool.core.errors import (  # noqa: E402
    ConduitClosedError,
    ContextCancelledError,
    DeadlineExceededError,
    InputSourceError,
    InvalidConfigError,
    InvalidWorkerCountError,
    ProcessorStateError,
    WorkpoolError,
)
from workpool.execution import (  # noqa: E402
    Conduit,
    ConduitReader,
    FanOutResult,
    JobProcessor,
    JobResult,
    JobState,
    partition_results,
    run_batch,
    run_batch_from_settings,
)

__all__ = [
    "__version__",
    "Context",
    "background",
    "with_cancel",
    "with_deadline",
    "with_timeout",
    "WorkpoolError",
    "InvalidConfigError",
    "InvalidWorkerCountError",
    "ProcessorStateError",
    "ConduitClosedError",
    "ContextCancelledError",
    "DeadlineExceededError",
    "InputSourceError",
    "Conduit",
    "ConduitReader",
    "JobProcessor",
    "JobState",
    "JobResult",
    "FanOutResult",
    "partition_results",
    "run_batch",
    "run_batch_from_settings",
]
