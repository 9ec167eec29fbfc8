"""Tests for cooperative cancellation contexts."""

import threading
import time

import pytest

from workpool.core.context import (
    _DEADLINES,
    Context,
    Signal,
    background,
    with_cancel,
    with_deadline,
    with_timeout,
)
from workpool.core.errors import (
    ContextCancelledError,
    DeadlineExceededError,
    InvalidConfigError,
)


class TestSignal:
    """Tests for the one-shot Signal."""

    def test_set_once(self):
        s = Signal()
        assert not s.is_set()
        assert s.set() is True
        assert s.set() is False
        assert s.is_set()

    def test_callback_runs_on_set(self):
        s = Signal()
        calls = []
        s.add_callback(lambda: calls.append("fired"))
        assert calls == []
        s.set()
        assert calls == ["fired"]

    def test_callback_runs_once(self):
        s = Signal()
        calls = []
        s.add_callback(lambda: calls.append(1))
        s.set()
        s.set()
        assert calls == [1]

    def test_callback_on_already_set_runs_immediately(self):
        s = Signal()
        s.set()
        calls = []
        handle = s.add_callback(lambda: calls.append(1))
        assert handle is None
        assert calls == [1]

    def test_removed_callback_not_run(self):
        s = Signal()
        calls = []
        handle = s.add_callback(lambda: calls.append(1))
        s.remove_callback(handle)
        s.set()
        assert calls == []

    def test_wait_wakes_on_set(self):
        s = Signal()
        threading.Timer(0.05, s.set).start()
        assert s.wait(2.0) is True

    def test_wait_times_out(self):
        assert Signal().wait(0.01) is False


class TestBackground:
    """Tests for the root context."""

    def test_never_done(self):
        ctx = background()
        assert not ctx.is_done()
        assert ctx.err() is None
        assert ctx.deadline is None

    def test_cancel_is_noop(self):
        ctx = background()
        assert ctx.cancel() is False
        assert not ctx.is_done()

    def test_singleton(self):
        assert background() is background()


class TestWithCancel:
    """Tests for cancellable contexts."""

    def test_cancel_sets_err(self):
        ctx = with_cancel(background())
        assert ctx.cancel() is True
        assert ctx.is_done()
        assert isinstance(ctx.err(), ContextCancelledError)
        assert not isinstance(ctx.err(), DeadlineExceededError)

    def test_cancel_idempotent(self):
        ctx = with_cancel()
        assert ctx.cancel() is True
        assert ctx.cancel() is False

    def test_none_parent_means_background(self):
        ctx = with_cancel(None)
        assert not ctx.is_done()

    def test_parent_cancel_propagates(self):
        parent = with_cancel()
        child = with_cancel(parent)
        grandchild = with_cancel(child)
        parent.cancel()
        assert child.is_done()
        assert grandchild.is_done()
        assert isinstance(grandchild.err(), ContextCancelledError)

    def test_child_cancel_does_not_affect_parent(self):
        parent = with_cancel()
        child = with_cancel(parent)
        child.cancel()
        assert not parent.is_done()

    def test_child_of_cancelled_parent_is_born_done(self):
        parent = with_cancel()
        parent.cancel()
        child = with_cancel(parent)
        assert child.is_done()
        assert isinstance(child.err(), ContextCancelledError)

    def test_set_is_cancel(self):
        ctx = with_cancel()
        ctx.set()
        assert isinstance(ctx.err(), ContextCancelledError)

    def test_raise_if_done(self):
        ctx = with_cancel()
        ctx.raise_if_done()  # live: no-op
        ctx.cancel()
        with pytest.raises(ContextCancelledError):
            ctx.raise_if_done()

    def test_wait_wakes_on_cancel(self):
        ctx = with_cancel()
        threading.Timer(0.05, ctx.cancel).start()
        assert ctx.wait(2.0) is True

    def test_callbacks_fire_on_parent_cancel(self):
        parent = with_cancel()
        child = with_cancel(parent)
        fired = []
        child.add_callback(lambda: fired.append(True))
        parent.cancel()
        assert fired == [True]


class TestWithTimeout:
    """Tests for deadline-bound contexts."""

    def test_expires(self):
        ctx = with_timeout(background(), 0.05)
        assert ctx.wait(2.0) is True
        assert isinstance(ctx.err(), DeadlineExceededError)
        assert isinstance(ctx.err(), TimeoutError)

    def test_zero_timeout_expires_immediately(self):
        ctx = with_timeout(background(), 0)
        assert ctx.is_done()
        assert isinstance(ctx.err(), DeadlineExceededError)

    def test_negative_timeout_raises(self):
        with pytest.raises(InvalidConfigError, match="non-negative"):
            with_timeout(background(), -1.0)

    def test_remaining(self):
        ctx = with_timeout(background(), 5.0)
        remaining = ctx.remaining()
        assert 4.5 < remaining <= 5.0
        ctx.cancel()

    def test_remaining_none_without_deadline(self):
        assert with_cancel().remaining() is None

    def test_cancel_before_deadline_reports_cancelled(self):
        ctx = with_timeout(background(), 5.0)
        ctx.cancel()
        assert not isinstance(ctx.err(), DeadlineExceededError)
        assert isinstance(ctx.err(), ContextCancelledError)

    def test_parent_deadline_wins_if_shorter(self):
        parent = with_timeout(background(), 1.0)
        child = with_timeout(parent, 60.0)
        assert child.deadline == parent.deadline
        parent.cancel()

    def test_child_deadline_wins_if_shorter(self):
        parent = with_timeout(background(), 60.0)
        child = with_timeout(parent, 0.05)
        assert child.wait(2.0) is True
        assert isinstance(child.err(), DeadlineExceededError)
        assert not parent.is_done()
        parent.cancel()

    def test_parent_expiry_propagates_as_deadline(self):
        parent = with_timeout(background(), 0.05)
        child = with_cancel(parent)
        assert child.wait(2.0) is True
        assert isinstance(child.err(), DeadlineExceededError)

    def test_with_deadline_absolute(self):
        ctx = with_deadline(background(), time.monotonic() + 0.05)
        assert ctx.wait(2.0) is True
        with pytest.raises(DeadlineExceededError):
            ctx.raise_if_done()

    def test_repr_mentions_state(self):
        ctx = with_cancel()
        assert "live" in repr(ctx)
        ctx.cancel()
        assert "cancelled" in repr(ctx)


class TestConcurrentCancel:
    """Cancelling from many threads at once."""

    def test_only_one_cancel_wins(self):
        ctx = with_cancel()
        wins = []
        barrier = threading.Barrier(10)

        def cancel():
            barrier.wait()
            wins.append(ctx.cancel())

        threads = [threading.Thread(target=cancel) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert wins.count(True) == 1
        assert isinstance(ctx, Context)


class TestDeadlineScheduler:
    """All deadlines are driven by one shared thread."""

    def _deadline_threads(self):
        return [t for t in threading.enumerate() if t.name == "workpool-deadlines"]

    def test_single_thread_for_many_deadlines(self):
        contexts = [with_timeout(background(), 30.0) for _ in range(100)]
        assert len(self._deadline_threads()) == 1
        for ctx in contexts:
            ctx.cancel()

    def test_expires_in_deadline_order(self):
        late = with_timeout(background(), 0.3)
        early = with_timeout(background(), 0.05)
        assert early.wait(2.0) is True
        assert not late.is_done()
        assert late.wait(2.0) is True
        assert isinstance(late.err(), DeadlineExceededError)

    def test_earlier_deadline_added_later_wakes_scheduler(self):
        far = with_timeout(background(), 60.0)
        near = with_timeout(background(), 0.05)
        assert near.wait(2.0) is True
        assert not far.is_done()
        far.cancel()

    def test_cancelled_entries_swept(self):
        contexts = [with_timeout(background(), 60.0) for _ in range(200)]
        for ctx in contexts:
            ctx.cancel()
        assert _DEADLINES.pending() < 100
