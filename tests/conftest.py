"""
Shared pytest fixtures and configuration for sheetstore tests.

This module provides:
- A fake clock/sleeper pair so quota waits finish instantly
- An in-memory Grid Backend, a manager over it, and a fresh database

Usage:
    Fixtures are auto-discovered by pytest:

    def test_something(database):
        table = database.create_table(Member)
"""

import sys
from pathlib import Path

import pytest

# Ensure sheetstore package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sheetstore.backends.memory import InMemoryGridBackend
from sheetstore.core.settings import SheetStoreSettings
from sheetstore.engine.manager import DatabaseManager
from sheetstore.engine.quota import QuotaThrottle


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Clock Fixtures
# =============================================================================


class FakeClock:
    """Manually advanced epoch clock; ``sleep`` advances it and records waits."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return True

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock starting on a window boundary (1_000_000 is a multiple of 100)."""
    return FakeClock()


@pytest.fixture
def throttle(clock: FakeClock) -> QuotaThrottle:
    """Default 90-per-100s throttle driven by the fake clock."""
    return QuotaThrottle(clock=clock, sleeper=clock.sleep)


# =============================================================================
# Backend / Engine Fixtures
# =============================================================================


@pytest.fixture
def settings() -> SheetStoreSettings:
    return SheetStoreSettings(_env_file=None)


@pytest.fixture
def backend() -> InMemoryGridBackend:
    return InMemoryGridBackend()


@pytest.fixture
def manager(backend, settings, throttle) -> DatabaseManager:
    return DatabaseManager(backend, settings=settings, throttle=throttle)


@pytest.fixture
def database(manager):
    """A freshly created database named ``test``."""
    return manager.create_database("test")

