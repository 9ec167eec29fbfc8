"""
Shared pytest fixtures and configuration for workpool tests.

This module provides:
- Auto-marking of tests as ``unit`` unless marked otherwise
- Settings-cache isolation so env-var tests don't leak
- Small handler helpers shared by the execution tests

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.
"""

import sys
import threading
from pathlib import Path
from typing import Generator

import pytest

# Ensure workpool package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from workpool.core.settings import clear_settings_cache


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark all tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    """Drop cached settings before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Concurrency Helpers
# =============================================================================


class ConcurrencyProbe:
    """Tracks how many handler calls are in flight at once."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls = 0

    def __enter__(self) -> "ConcurrencyProbe":
        with self._lock:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
        return self

    def __exit__(self, *args) -> None:
        with self._lock:
            self.active -= 1


@pytest.fixture
def probe() -> ConcurrencyProbe:
    """Fresh in-flight counter for concurrency-bound assertions."""
    return ConcurrencyProbe()


def drain_in_thread(reader) -> tuple[threading.Thread, list]:
    """Start a thread that drains *reader* into a list until it closes."""
    collected: list = []

    def run() -> None:
        for record in reader:
            collected.append(record)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread, collected


@pytest.fixture
def drain():
    """Return the ``drain_in_thread`` helper."""
    return drain_in_thread
