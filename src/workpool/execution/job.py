"""Job Processor — long-lived worker pool fed over time, drained of results.

WHY
───
Some work does not arrive as a fixed batch: items trickle in from a
crawler, a queue consumer, or another pool. ``JobProcessor`` keeps N
worker threads alive, lets any number of producers hand them items, and
streams one :class:`JobResult` per item back to a consumer until it is
stopped.

ARCHITECTURE
────────────
::

    JobProcessor(workers=N, handler, timeout)
      ├── .start()          ─ launch N worker threads
      ├── .enqueue(item)    ─ rendezvous hand-off to a free worker
      ├── .results()        ─ ConduitReader of JobResult, closes after stop
      └── .stop()           ─ one-shot, ordered shutdown

    producers ──enqueue──► [inputs: Conduit] ──► worker 0..N-1
                                                    │ handler(ctx, item)
    consumer ◄──results()── [results: Conduit] ◄────┘

    Lifecycle: CREATED ─start()─► RUNNING ─stop()─► STOPPING ─► STOPPED

SHUTDOWN ORDER
──────────────
``stop()`` runs exactly once, however many threads call it:

  1. raise ``stopping``      ─ new and in-flight enqueues give up
  2. cancel the context      ─ handlers observe cancellation
  3. close the inputs        ─ idle workers leave their loop
  4. join every worker       ─ busy workers finish and emit their result
  5. close the results       ─ consumers' iteration ends

``enqueue`` sends with ``stopping`` (and the run context) as abort
signals, and the conduit checks abort signals before its closed flag
under its own lock. Because step 1 happens before step 3, an enqueue
racing with ``stop()`` either delivers its item (which then yields a
result) or returns ``False``; it never trips over the closed conduit.

BEST PRACTICES
──────────────
- Drain ``results()`` on a different thread from the one calling
  ``stop()``: workers block until their result is taken, and step 4
  waits for them.
- Handlers must poll ``ctx`` (``ctx.is_done()``, ``ctx.wait(t)``).
  A handler that ignores cancellation delays ``stop()`` until it
  returns; threads are never killed.

Example::

    def fetch(ctx, url):
        if ctx.is_done():
            return "cancelled"
        return download(url)

    job = JobProcessor(4, fetch, timeout=60.0)
    job.start()

    def produce():
        for url in urls:
            job.enqueue(url)
        job.stop()

    threading.Thread(target=produce).start()
    for record in job.results():
        print(record.worker_id, record.value, record.error)
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from workpool.core.context import Context, Signal, background, with_cancel, with_timeout
from workpool.core.errors import InvalidConfigError, InvalidWorkerCountError, ProcessorStateError
from workpool.core.logging import get_logger
from workpool.core.settings import WorkpoolSettings, get_settings
from workpool.execution.conduit import Conduit, ConduitReader
from workpool.execution.results import JobResult

logger = get_logger(__name__)

In = TypeVar("In")
Out = TypeVar("Out")


class JobState(str, Enum):
    """Job processor lifecycle states."""

    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


def validate_workers(workers: Any) -> int:
    """Reject anything but a positive int.

    Raises:
        InvalidWorkerCountError: If workers is not an int >= 1
    """
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise InvalidWorkerCountError(workers)
    return workers


class JobProcessor(Generic[In, Out]):
    """Fixed-size pool of worker threads processing items fed over time.

    Parameters
    ----------
    workers : int
        Number of worker threads, fixed for the processor's lifetime.
    handler : Callable[[Context, In], Out]
        Called once per item with the processor's context.
    timeout : float | None
        Seconds until the processor's context expires, measured from
        construction. ``None`` or ``0`` means unbounded.
    name : str | None
        Used in thread names and log lines.
    """

    def __init__(
        self,
        workers: int,
        handler: Callable[[Context, In], Out],
        timeout: float | None = None,
        *,
        name: str | None = None,
    ) -> None:
        self._workers = validate_workers(workers)
        if timeout is not None and timeout < 0:
            raise InvalidConfigError(f"timeout must be non-negative, got {timeout}")

        self._name = name or f"job-{uuid.uuid4().hex[:8]}"
        self._handler = handler
        self._timeout = timeout or None

        if self._timeout:
            self._ctx = with_timeout(background(), self._timeout)
        else:
            self._ctx = with_cancel(background())

        self._inputs: Conduit[In] = Conduit(f"{self._name}.inputs")
        self._results: Conduit[JobResult[Out]] = Conduit(f"{self._name}.results")
        self._stopping = Signal()
        self._stopped = threading.Event()

        self._lock = threading.Lock()
        self._state = JobState.CREATED
        self._threads: list[threading.Thread] = []

    @classmethod
    def from_settings(
        cls,
        handler: Callable[[Context, In], Out],
        settings: WorkpoolSettings | None = None,
        *,
        name: str | None = None,
    ) -> JobProcessor[In, Out]:
        """Build a processor from ``WORKPOOL_*`` settings."""
        settings = settings or get_settings()
        return cls(settings.workers, handler, settings.total_timeout, name=name)

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    @property
    def workers(self) -> int:
        return self._workers

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def context(self) -> Context:
        """The context handed to every handler call."""
        return self._ctx

    @property
    def is_stopping(self) -> bool:
        return self._stopping.is_set()

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        """Launch the worker threads.

        Raises:
            ProcessorStateError: If already started or stopped
        """
        with self._lock:
            if self._state is not JobState.CREATED:
                raise ProcessorStateError(
                    f"cannot start processor in state {self._state.value!r}"
                ).with_context(processor=self._name, operation="start")
            self._state = JobState.RUNNING
            for worker_id in range(self._workers):
                thread = threading.Thread(
                    target=self._work,
                    args=(worker_id,),
                    name=f"{self._name}-worker-{worker_id}",
                    daemon=True,
                )
                self._threads.append(thread)
                thread.start()

        logger.info(
            "job.start",
            processor=self._name,
            workers=self._workers,
            timeout=self._timeout,
        )

    def enqueue(self, item: In) -> bool:
        """Hand *item* to the next free worker, blocking until one takes it.

        Returns:
            True if a worker accepted the item; False if it was dropped
            because the processor is stopping or its context expired

        Raises:
            ProcessorStateError: If called before :meth:`start`
        """
        if self._state is JobState.CREATED:
            raise ProcessorStateError("enqueue called before start").with_context(
                processor=self._name, operation="enqueue"
            )
        if self._stopping.is_set():
            logger.debug("job.enqueue_dropped", processor=self._name, reason="stopping")
            return False

        delivered = self._inputs.send(item, abort=(self._stopping, self._ctx))
        if not delivered:
            logger.debug(
                "job.enqueue_dropped",
                processor=self._name,
                reason="stopping" if self._stopping.is_set() else "context_done",
            )
        return delivered

    def results(self) -> ConduitReader[JobResult[Out]]:
        """Receive-only stream of results; iteration ends after :meth:`stop`."""
        return self._results.reader()

    def stop(self) -> None:
        """Shut the processor down. Idempotent and safe from any thread.

        The first call runs the shutdown sequence; concurrent and later
        calls wait for it to finish. Called from inside a handler, the
        worker-join and result-close steps are handed to a helper thread
        so the calling worker can still emit its result.
        """
        with self._lock:
            first = self._state not in (JobState.STOPPING, JobState.STOPPED)
            if first:
                self._state = JobState.STOPPING
                threads = list(self._threads)

        in_worker = threading.current_thread() in self._threads

        if not first:
            if not in_worker:
                self._stopped.wait()
            return

        logger.info("job.stopping", processor=self._name)
        self._stopping.set()
        self._ctx.cancel()
        self._inputs.close()

        if in_worker:
            threading.Thread(
                target=self._finish_stop,
                args=(threads,),
                name=f"{self._name}-stopper",
                daemon=True,
            ).start()
            return
        self._finish_stop(threads)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until shutdown has completed.

        Returns:
            True if the processor is stopped
        """
        return self._stopped.wait(timeout)

    # ── Internals ────────────────────────────────────────────────────

    def _finish_stop(self, threads: list[threading.Thread]) -> None:
        current = threading.current_thread()
        for thread in threads:
            if thread is not current:
                thread.join()
        self._results.close()

        with self._lock:
            self._state = JobState.STOPPED
        self._stopped.set()
        logger.info("job.stopped", processor=self._name)

    def _work(self, worker_id: int) -> None:
        processed = 0
        while not self._ctx.is_done():
            item, ok = self._inputs.recv(abort=self._ctx)
            if not ok:
                break
            self._results.send(self._run_handler(worker_id, item))
            processed += 1

        logger.debug(
            "job.worker_exit",
            processor=self._name,
            worker_id=worker_id,
            processed=processed,
            reason="context_done" if self._ctx.is_done() else "inputs_closed",
        )

    def _run_handler(self, worker_id: int, item: In) -> JobResult[Out]:
        try:
            value = self._handler(self._ctx, item)
        except Exception as e:
            logger.warning(
                "job.handler_failed",
                processor=self._name,
                worker_id=worker_id,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            return JobResult(worker_id=worker_id, error=e)
        return JobResult(worker_id=worker_id, value=value)

    def __repr__(self) -> str:
        return (
            f"JobProcessor(name={self._name!r}, workers={self._workers}, "
            f"state={self._state.value})"
        )


__all__ = ["JobProcessor", "JobState", "validate_workers"]
