"""
Shared pytest fixtures and configuration for timespine tests.

This module provides:
- A controllable clock so ``current_time`` defaults are deterministic
- In-memory and SQLite-backed stores (plus a fixture parametrized over both)
- Native and set-oriented reconcilers (parametrized)
- Settings cache reset between tests

Usage:
    def test_something(store, reconciler, clock):
        timeline = Timeline(store, {"wrapper_id": 1}, reconciler=reconciler, clock=clock)
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from timespine.core.settings import reset_settings
from timespine.reconcile.strategy import NativeReconciler, SetReconciler
from timespine.storage.memory import InMemoryTimelineStore
from timespine.storage.session import create_timespine_engine
from timespine.storage.sql import SqlAlchemyTimelineStore


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on the fixtures they use."""
    for item in items:
        fixtures = getattr(item, "fixturenames", ())
        if "sql_store" in fixtures or "engine" in fixtures:
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Clock
# =============================================================================


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to 2018-09-25 00:00 UTC."""
    return FixedClock(datetime(2018, 9, 25, tzinfo=UTC))


# =============================================================================
# Settings isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_settings() -> Generator[None, None, None]:
    """Clear the cached settings before and after each test."""
    reset_settings()
    yield
    reset_settings()


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def memory_store() -> InMemoryTimelineStore:
    return InMemoryTimelineStore()


@pytest.fixture
def engine():
    """In-memory SQLite engine (single shared connection)."""
    eng = create_timespine_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def sql_store(engine) -> SqlAlchemyTimelineStore:
    """SQL store with tables created on the in-memory engine."""
    store = SqlAlchemyTimelineStore(engine)
    store.create_all()
    return store


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Each test using this runs once per store implementation."""
    if request.param == "memory":
        return InMemoryTimelineStore()
    return request.getfixturevalue("sql_store")


@pytest.fixture(params=["native", "set"])
def reconciler(request):
    """Each test using this runs once per reconciler strategy."""
    if request.param == "native":
        return NativeReconciler()
    return SetReconciler()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """File-backed SQLite URL for CLI tests (separate processes of state)."""
    return f"sqlite:///{tmp_path / 'timespine.db'}"
