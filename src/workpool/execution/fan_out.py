"""Fan-Out Batch Runner — one-shot bounded parallelism with per-task timeouts.

WHY
───
The common case is "run this function over these 500 inputs, at most 8
at a time, and give every call 10 seconds". ``run_batch`` does exactly
that in a single blocking call and returns one :class:`FanOutResult` per
processed input.

ARCHITECTURE
────────────
::

    run_batch(ctx, inputs, workers, task_timeout, fn)

      batch ctx = with_cancel(ctx)
          │
      feeder thread ──send──► [inputs: Conduit] ──► worker 0..N-1
      (stops early if                                │ task ctx = with_timeout(batch, t)
       batch ctx fires)                              │ fn(task ctx, item)
                                                     ▼
      caller ◄──drain── [outputs: Conduit] ◄─────────┘
                              ▲
      closer thread ──────────┘ closes once every worker has exited

    vs JobProcessor                 vs run_batch
    ─────────────────               ────────────
    fed over time                   fixed batch
    start / enqueue / stop          one call
    one run-wide deadline           fresh deadline per task

Guarantees:
    - At most ``workers`` handler calls in flight (zero-capacity inputs).
    - Each task's deadline starts when a worker picks it up.
    - Results come back in completion order; use ``result.input``.
    - If the outer context is cancelled mid-feed, unfed inputs produce no
      result at all.
    - If iterating ``inputs`` raises, the batch is cancelled and
      ``run_batch`` raises :class:`InputSourceError` once in-flight tasks
      have reported.

Example::

    def fetch(ctx, url):
        return http_get(url, timeout=ctx.remaining())

    results = run_batch(None, urls, workers=8, task_timeout=10.0, fn=fetch)
    failed = [r.input for r in results if not r.ok]
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable, Iterable
from typing import TypeVar

from workpool.core.context import Context, with_cancel, with_timeout
from workpool.core.errors import InputSourceError, InvalidConfigError, categorize_error
from workpool.core.logging import get_logger
from workpool.core.settings import WorkpoolSettings, get_settings
from workpool.execution.conduit import Conduit
from workpool.execution.job import validate_workers
from workpool.execution.results import FanOutResult

logger = get_logger(__name__)

In = TypeVar("In")
Out = TypeVar("Out")


def run_batch(
    ctx: Context | None,
    inputs: Iterable[In],
    workers: int,
    task_timeout: float,
    fn: Callable[[Context, In], Out],
) -> list[FanOutResult[Out]]:
    """Run *fn* over every input with bounded parallelism.

    Args:
        ctx: Outer context; cancelling it aborts the batch. None means
            :func:`~workpool.core.context.background`.
        inputs: Items to process, fed in order.
        workers: Maximum concurrent handler calls.
        task_timeout: Seconds each call's context lives, from pickup.
        fn: ``fn(task_ctx, item) -> value``; an exception becomes the
            record's ``error``.

    Returns:
        One :class:`FanOutResult` per processed input, in completion order

    Raises:
        InvalidWorkerCountError: If workers < 1
        InvalidConfigError: If task_timeout <= 0
        InputSourceError: If iterating *inputs* raised; the batch is
            cancelled and the records produced so far ride on the error
    """
    validate_workers(workers)
    if task_timeout <= 0:
        raise InvalidConfigError(f"task_timeout must be positive, got {task_timeout}")

    batch_id = uuid.uuid4().hex[:8]
    batch_ctx = with_cancel(ctx)
    in_ch: Conduit[In] = Conduit(f"fan-out-{batch_id}.inputs")
    out_ch: Conduit[FanOutResult[Out]] = Conduit(f"fan-out-{batch_id}.outputs")
    started = time.monotonic()

    logger.info(
        "fan_out.start",
        batch_id=batch_id,
        workers=workers,
        task_timeout=task_timeout,
    )

    def work(worker_id: int) -> None:
        for item in in_ch:
            task_ctx = with_timeout(batch_ctx, task_timeout)
            try:
                value, error = fn(task_ctx, item), None
            except Exception as e:
                value, error = None, e
                logger.warning(
                    "fan_out.task_failed",
                    batch_id=batch_id,
                    worker_id=worker_id,
                    error=str(e),
                    error_type=e.__class__.__name__,
                )
            finally:
                task_ctx.cancel()
            out_ch.send(FanOutResult(worker_id=worker_id, input=item, value=value, error=error))

    feed_errors: list[Exception] = []

    def feed() -> None:
        try:
            for item in inputs:
                if not in_ch.send(item, abort=batch_ctx):
                    logger.info("fan_out.feed_aborted", batch_id=batch_id)
                    return
        except Exception as e:
            feed_errors.append(e)
            batch_ctx.cancel()
            logger.error(
                "fan_out.feed_failed",
                batch_id=batch_id,
                error=str(e),
                error_type=e.__class__.__name__,
            )
        finally:
            in_ch.close()

    threads = [
        threading.Thread(target=work, args=(i,), name=f"fan-out-{batch_id}-worker-{i}", daemon=True)
        for i in range(workers)
    ]
    for thread in threads:
        thread.start()

    def close_when_done() -> None:
        for thread in threads:
            thread.join()
        out_ch.close()

    threading.Thread(target=feed, name=f"fan-out-{batch_id}-feeder", daemon=True).start()
    threading.Thread(target=close_when_done, name=f"fan-out-{batch_id}-closer", daemon=True).start()

    results: list[FanOutResult[Out]] = []
    try:
        results.extend(out_ch)
    finally:
        batch_ctx.cancel()

    # feed() records its error before closing the inputs, and the outputs
    # close only after that.
    if feed_errors:
        cause = feed_errors[0]
        raise InputSourceError(
            f"input iterable raised {cause.__class__.__name__}: {cause}",
            results=results,
            category=categorize_error(cause),
            cause=cause,
        ).with_context(operation="feed", batch_id=batch_id)

    failed = sum(1 for r in results if not r.ok)
    logger.info(
        "fan_out.complete",
        batch_id=batch_id,
        total=len(results),
        succeeded=len(results) - failed,
        failed=failed,
        duration_seconds=round(time.monotonic() - started, 4),
    )
    return results


def run_batch_from_settings(
    ctx: Context | None,
    inputs: Iterable[In],
    fn: Callable[[Context, In], Out],
    settings: WorkpoolSettings | None = None,
) -> list[FanOutResult[Out]]:
    """:func:`run_batch` with ``workers`` and ``task_timeout`` from settings."""
    settings = settings or get_settings()
    return run_batch(ctx, inputs, settings.workers, settings.task_timeout, fn)


__all__ = ["run_batch", "run_batch_from_settings"]
