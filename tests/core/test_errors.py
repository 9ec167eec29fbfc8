"""Tests for workpool.core.errors module."""

import pytest

from workpool.core.errors import (
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


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.processor is None
        assert ctx.worker_id is None
        assert ctx.metadata == {}
        assert ctx.to_dict() == {}

    def test_to_dict_skips_none(self):
        ctx = ErrorContext(processor="ingest", worker_id=0)
        assert ctx.to_dict() == {"processor": "ingest", "worker_id": 0}

    def test_metadata_merged_into_dict(self):
        ctx = ErrorContext(operation="enqueue")
        ctx.metadata["item"] = "a"
        assert ctx.to_dict() == {"operation": "enqueue", "item": "a"}


class TestWorkpoolError:
    """Test the base error."""

    def test_default_category(self):
        err = WorkpoolError("boom")
        assert err.category == ErrorCategory.INTERNAL
        assert str(err) == "boom"

    def test_with_context_known_and_unknown_keys(self):
        err = WorkpoolError("boom").with_context(processor="p1", attempt=3)
        assert err.context.processor == "p1"
        assert err.context.metadata == {"attempt": 3}

    def test_cause_chained(self):
        cause = KeyError("missing")
        err = WorkpoolError("wrapped", cause=cause)
        assert err.cause is cause
        assert err.__cause__ is cause

    def test_to_dict(self):
        err = WorkpoolError("boom", cause=ValueError("x")).with_context(operation="stop")
        d = err.to_dict()
        assert d["error_type"] == "WorkpoolError"
        assert d["category"] == "INTERNAL"
        assert d["context"] == {"operation": "stop"}
        assert d["cause"] == "x"

    def test_repr(self):
        assert repr(ConfigError("bad")) == "ConfigError('bad', category=CONFIG)"


class TestHierarchy:
    """Subclass categories and builtin compatibility."""

    def test_invalid_worker_count(self):
        err = InvalidWorkerCountError(0)
        assert isinstance(err, InvalidConfigError)
        assert isinstance(err, ValueError)
        assert err.category == ErrorCategory.CONFIG
        assert err.workers == 0
        assert "0" in str(err)

    def test_processor_state_is_runtime_error(self):
        err = ProcessorStateError("not started")
        assert isinstance(err, RuntimeError)
        assert err.category == ErrorCategory.STATE

    def test_conduit_closed_default_message(self):
        err = ConduitClosedError()
        assert err.category == ErrorCategory.CHANNEL
        assert "closed" in str(err)

    def test_deadline_is_cancelled_and_timeout(self):
        err = DeadlineExceededError()
        assert isinstance(err, ContextCancelledError)
        assert isinstance(err, TimeoutError)
        assert err.category == ErrorCategory.TIMEOUT

    def test_deadline_catchable_as_timeout(self):
        with pytest.raises(TimeoutError):
            raise DeadlineExceededError()

    def test_merge_error_is_validation(self):
        assert issubclass(MergeError, ValidationError)
        assert MergeError("x").category == ErrorCategory.VALIDATION

    def test_input_source_error_keeps_results(self):
        cause = OSError("disk gone")
        err = InputSourceError("feed failed", results=[1, 2], cause=cause)
        assert err.results == [1, 2]
        assert err.__cause__ is cause
        assert err.category == ErrorCategory.UNKNOWN
        assert InputSourceError("x").results == []


class TestCategorizeError:
    """Test categorize_error helper."""

    def test_workpool_error(self):
        assert categorize_error(ContextCancelledError()) == ErrorCategory.CANCELLED

    def test_builtin_timeout(self):
        assert categorize_error(TimeoutError()) == ErrorCategory.TIMEOUT

    def test_value_error(self):
        assert categorize_error(ValueError()) == ErrorCategory.VALIDATION

    def test_unknown(self):
        assert categorize_error(RuntimeError()) == ErrorCategory.UNKNOWN
