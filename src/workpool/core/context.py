"""Cooperative cancellation for worker threads.

A :class:`Context` is a one-shot, observable "stop now" signal that is
passed to every handler call. Contexts form a tree: cancelling a parent
cancels every descendant, and a context created with a deadline cancels
itself (with :class:`DeadlineExceededError`) when the deadline elapses.
Nothing is ever forcibly interrupted; handlers are expected to poll.

Architecture:
    ::

        background()                      never fires
          └── with_timeout(bg, 60.0)      JobProcessor run context
          └── with_cancel(outer)          fan-out batch context
                ├── with_timeout(b, 5.0)  task 1 (own deadline)
                └── with_timeout(b, 5.0)  task 2 (own deadline)

        Signal                            one-shot event + callbacks
          └── Context                     + parent, deadline, err()

    Effective deadline is the earlier of a context's own deadline and
    its parent's, mirroring nested ``with_deadline`` blocks where the
    shortest wins. All deadlines share one ``workpool-deadlines`` daemon
    thread, however many contexts are live.

Examples:
    Polling inside a handler:

    >>> def handler(ctx, url):
    ...     for chunk in stream(url):
    ...         if ctx.is_done():
    ...             return "cancelled"
    ...         consume(chunk)
    ...     return "ok"

    Sleeping cooperatively (returns True if woken by cancellation):

    >>> ctx = with_timeout(background(), 0.05)
    >>> ctx.wait(1.0)
    True
    >>> type(ctx.err()).__name__
    'DeadlineExceededError'

Guardrails:
    - A handler that never checks its context can stall shutdown.
    - Callbacks registered with :meth:`Signal.add_callback` run on the
      cancelling thread; keep them short and non-blocking.

Tags:
    cancellation, deadline, context, threading, workpool
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections.abc import Callable

from workpool.core.errors import (
    ContextCancelledError,
    DeadlineExceededError,
    InvalidConfigError,
)
from workpool.core.logging import get_logger

logger = get_logger(__name__)


class Signal:
    """A one-shot, thread-safe flag that can notify listeners when raised."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_handle = 0

    def set(self) -> bool:
        """Raise the signal. Returns True only for the call that raised it."""
        with self._lock:
            callbacks = self._fire_locked()
        if callbacks is None:
            return False
        self._run_callbacks(callbacks)
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the signal is raised or *timeout* elapses.

        Returns:
            True if the signal is raised
        """
        return self._event.wait(timeout)

    def add_callback(self, fn: Callable[[], None]) -> int | None:
        """Run *fn* once the signal is raised.

        If the signal is already raised, *fn* runs immediately on the
        calling thread and ``None`` is returned.

        Returns:
            Handle for :meth:`remove_callback`
        """
        with self._lock:
            if not self._event.is_set():
                handle = self._next_handle
                self._next_handle += 1
                self._callbacks[handle] = fn
                return handle
        fn()
        return None

    def remove_callback(self, handle: int | None) -> None:
        if handle is None:
            return
        with self._lock:
            self._callbacks.pop(handle, None)

    # Caller must hold self._lock.
    def _fire_locked(self) -> list[Callable[[], None]] | None:
        if self._event.is_set():
            return None
        self._event.set()
        callbacks = list(self._callbacks.values())
        self._callbacks.clear()
        return callbacks

    @staticmethod
    def _run_callbacks(callbacks: list[Callable[[], None]]) -> None:
        for fn in callbacks:
            fn()


class _DeadlineScheduler:
    """One daemon thread that expires contexts in deadline order.

    Entries live in a min-heap keyed on the monotonic deadline. Contexts
    cancelled before their deadline are left in place and swept out once
    they make up more than half of the heap.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._heap: list[tuple[float, int, Context]] = []
        self._seq = itertools.count()
        self._stale = 0
        self._thread: threading.Thread | None = None

    def schedule(self, ctx: Context, deadline: float) -> None:
        with self._cond:
            heapq.heappush(self._heap, (deadline, next(self._seq), ctx))
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._run, name="workpool-deadlines", daemon=True
                )
                self._thread.start()
            self._cond.notify()

    def discard(self) -> None:
        """Note that a scheduled context finished early."""
        with self._cond:
            self._stale += 1
            if self._stale > len(self._heap) // 2:
                self._heap = [entry for entry in self._heap if not entry[2].is_done()]
                heapq.heapify(self._heap)
                self._stale = 0

    def pending(self) -> int:
        with self._cond:
            return len(self._heap)

    def _run(self) -> None:
        while True:
            with self._cond:
                ctx = self._next_due()
            try:
                ctx._expire()
            except Exception:
                logger.exception("context.expire_failed", deadline=ctx.deadline)

    # Caller must hold self._cond.
    def _next_due(self) -> Context:
        while True:
            while self._heap and self._heap[0][2].is_done():
                heapq.heappop(self._heap)
            if not self._heap:
                self._cond.wait()
                continue
            delay = self._heap[0][0] - time.monotonic()
            if delay <= 0:
                return heapq.heappop(self._heap)[2]
            self._cond.wait(delay)


_DEADLINES = _DeadlineScheduler()


class Context(Signal):
    """Hierarchical cancellation token with an optional deadline.

    Use the module-level factories (:func:`background`, :func:`with_cancel`,
    :func:`with_timeout`, :func:`with_deadline`) rather than constructing
    contexts directly.

    Attributes:
        deadline: Effective deadline on the ``time.monotonic()`` clock, or None
    """

    _cancellable = True

    def __init__(self, parent: Context | None = None, deadline: float | None = None):
        super().__init__()
        self._parent = parent
        self._err: ContextCancelledError | None = None
        self._children: set[Context] = set()

        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

        if parent is not None and parent._cancellable:
            parent._attach(self)

        if deadline is not None:
            self._arm_timer(deadline)

    # ── Public API ───────────────────────────────────────────────────

    def cancel(self) -> bool:
        """Cancel this context and all of its descendants.

        Returns:
            True if this call cancelled the context, False if it was
            already done
        """
        return self._cancel(ContextCancelledError())

    def set(self) -> bool:
        return self.cancel()

    def is_done(self) -> bool:
        """True once the context has been cancelled or its deadline passed."""
        return self._event.is_set()

    def err(self) -> ContextCancelledError | None:
        """Why the context is done: ``None`` while still live."""
        return self._err

    def remaining(self) -> float | None:
        """Seconds until the deadline (negative once passed), or None."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def raise_if_done(self) -> None:
        """Raise the context's error if it is done.

        Raises:
            ContextCancelledError: If the context was cancelled
            DeadlineExceededError: If the deadline elapsed
        """
        err = self._err
        if err is not None:
            raise err.__class__(err.message)

    def __repr__(self) -> str:
        state = "live" if self._err is None else self._err.category.value.lower()
        return f"{self.__class__.__name__}(state={state}, deadline={self.deadline})"

    # ── Tree maintenance ─────────────────────────────────────────────

    def _attach(self, child: Context) -> None:
        with self._lock:
            if not self._event.is_set():
                self._children.add(child)
                return
            err = self._err
        child._cancel(err.__class__(err.message))

    def _detach(self, child: Context) -> None:
        with self._lock:
            self._children.discard(child)

    def _arm_timer(self, deadline: float) -> None:
        if deadline <= time.monotonic():
            self._cancel(DeadlineExceededError())
            return
        _DEADLINES.schedule(self, deadline)

    def _expire(self) -> None:
        self._cancel(DeadlineExceededError())

    def _cancel(self, err: ContextCancelledError) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self._err = err
            callbacks = self._fire_locked() or []
            children = list(self._children)
            self._children.clear()

        if self.deadline is not None:
            _DEADLINES.discard()
        if self._parent is not None and self._parent._cancellable:
            self._parent._detach(self)
        for child in children:
            child._cancel(err.__class__(err.message))
        self._run_callbacks(callbacks)
        return True


class _BackgroundContext(Context):
    """Root context: never cancelled, no deadline."""

    _cancellable = False

    def _cancel(self, err: ContextCancelledError) -> bool:
        return False

    def __repr__(self) -> str:
        return "background()"


_BACKGROUND = _BackgroundContext()


def background() -> Context:
    """The root context. It is never cancelled and has no deadline."""
    return _BACKGROUND


def with_cancel(parent: Context | None = None) -> Context:
    """A child of *parent* that can be cancelled independently."""
    return Context(parent or _BACKGROUND)


def with_deadline(parent: Context | None, deadline: float) -> Context:
    """A child of *parent* that expires at *deadline* (``time.monotonic()``)."""
    return Context(parent or _BACKGROUND, deadline=deadline)


def with_timeout(parent: Context | None, seconds: float) -> Context:
    """A child of *parent* that expires *seconds* from now.

    Raises:
        InvalidConfigError: If seconds is negative
    """
    if seconds < 0:
        raise InvalidConfigError(f"Timeout must be non-negative, got {seconds}")
    return with_deadline(parent, time.monotonic() + seconds)


__all__ = [
    "Signal",
    "Context",
    "background",
    "with_cancel",
    "with_deadline",
    "with_timeout",
]
