"""Conduit — zero-capacity rendezvous channel between threads.

A send completes only once a receiver has taken the item, so a conduit
never buffers work: a producer that outpaces its consumers simply blocks.
This is the only backpressure mechanism in workpool.

ARCHITECTURE
────────────
::

    Conduit
      ├── .send(item, abort=...)  ─ place item in the slot, wait until taken
      ├── .recv(abort=...)        ─ take the slot's item, or (None, False)
      ├── .close()                ─ wake everyone; later sends raise
      └── .reader()               ─ receive-only view (ConduitReader)

    One hand-off slot guarded by a Condition:

        sender A ──┐                       ┌── receiver 1
        sender B ──┼──►  [ slot: (t, x) ]  ├── receiver 2
        sender C ──┘                       └── receiver 3

    Senders queue for the empty slot; the sender that fills it waits
    until a receiver empties it (hand-off complete) or one of its abort
    signals fires (item retracted).

ARBITRATION
───────────
``send`` decides between "abort observed" and "hand-off completed" under
the conduit lock, and checks abort signals before the closed flag. A
producer whose abort signal is raised before the conduit is closed can
therefore never see the close as a fault: it either handed its item
over or gets ``False`` back.

Example::

    ch = Conduit("numbers")

    def produce():
        for i in range(3):
            ch.send(i)
        ch.close()

    threading.Thread(target=produce).start()
    assert list(ch) == [0, 1, 2]
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

from workpool.core.context import Signal
from workpool.core.errors import ConduitClosedError

T = TypeVar("T")

AbortSignals = Signal | Iterable[Signal] | None


def _as_signals(abort: AbortSignals) -> tuple[Signal, ...]:
    if abort is None:
        return ()
    if isinstance(abort, Signal):
        return (abort,)
    return tuple(abort)


def _any_set(signals: tuple[Signal, ...]) -> bool:
    return any(s.is_set() for s in signals)


class Conduit(Generic[T]):
    """Unbuffered, multi-producer, multi-consumer channel."""

    def __init__(self, name: str = "conduit") -> None:
        self.name = name
        self._cond = threading.Condition(threading.RLock())
        self._closed = False
        self._slot: tuple[int, T] | None = None
        self._tickets = itertools.count()

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, item: T, abort: AbortSignals = None) -> bool:
        """Hand *item* to a receiver, blocking until one takes it.

        Args:
            item: Value to deliver
            abort: Signal(s) that cancel the send while it is waiting

        Returns:
            True once a receiver took the item, False if an abort signal
            fired first (the item was not delivered)

        Raises:
            ConduitClosedError: If the conduit is, or becomes, closed
                before the hand-off and no abort signal has fired
        """
        signals = _as_signals(abort)
        handles = self._watch(signals)
        try:
            with self._cond:
                ticket = next(self._tickets)

                while True:
                    if _any_set(signals):
                        return False
                    if self._closed:
                        raise ConduitClosedError(f"send on closed conduit {self.name!r}")
                    if self._slot is None:
                        break
                    self._cond.wait()

                self._slot = (ticket, item)
                self._cond.notify_all()

                while self._slot is not None and self._slot[0] == ticket:
                    if _any_set(signals) or self._closed:
                        self._slot = None
                        self._cond.notify_all()
                        if _any_set(signals):
                            return False
                        raise ConduitClosedError(f"conduit {self.name!r} closed during send")
                    self._cond.wait()
                return True
        finally:
            self._unwatch(signals, handles)

    def recv(self, abort: AbortSignals = None) -> tuple[T | None, bool]:
        """Take the next item, blocking until a sender offers one.

        Returns:
            ``(item, True)`` on delivery; ``(None, False)`` once the conduit
            is closed or an abort signal fired
        """
        signals = _as_signals(abort)
        handles = self._watch(signals)
        try:
            with self._cond:
                while True:
                    if _any_set(signals) or self._closed:
                        return None, False
                    if self._slot is not None:
                        _, item = self._slot
                        self._slot = None
                        self._cond.notify_all()
                        return item, True
                    self._cond.wait()
        finally:
            self._unwatch(signals, handles)

    def close(self) -> None:
        """Close the conduit, waking every blocked sender and receiver.

        Raises:
            ConduitClosedError: If already closed
        """
        with self._cond:
            if self._closed:
                raise ConduitClosedError(f"close of closed conduit {self.name!r}")
            self._closed = True
            self._cond.notify_all()

    def reader(self) -> ConduitReader[T]:
        return ConduitReader(self)

    def __iter__(self) -> Iterator[T]:
        while True:
            item, ok = self.recv()
            if not ok:
                return
            yield item  # type: ignore[misc]

    def __repr__(self) -> str:
        return f"Conduit(name={self.name!r}, closed={self._closed})"

    # ── Abort-signal plumbing ────────────────────────────────────────

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _watch(self, signals: tuple[Signal, ...]) -> list[int | None]:
        return [s.add_callback(self._wake) for s in signals]

    @staticmethod
    def _unwatch(signals: tuple[Signal, ...], handles: list[int | None]) -> None:
        for s, handle in zip(signals, handles):
            s.remove_callback(handle)


class ConduitReader(Generic[T]):
    """Receive-only view of a :class:`Conduit`.

    Iterate it to drain items until the underlying conduit closes::

        for record in processor.results():
            handle(record)
    """

    def __init__(self, conduit: Conduit[T]) -> None:
        self._conduit = conduit

    @property
    def name(self) -> str:
        return self._conduit.name

    @property
    def closed(self) -> bool:
        return self._conduit.closed

    def recv(self, abort: AbortSignals = None) -> tuple[T | None, bool]:
        return self._conduit.recv(abort)

    def __iter__(self) -> Iterator[T]:
        return iter(self._conduit)

    def __repr__(self) -> str:
        return f"ConduitReader(name={self.name!r}, closed={self.closed})"


__all__ = ["Conduit", "ConduitReader"]
