"""
Shared pytest fixtures.

A session-scoped QCoreApplication backs every test that creates an
``EventBus`` (a QObject).  The offscreen platform keeps the suite
headless.  Time-dependent components get a ``FixedClock`` so retrieval
windows and cache TTLs are deterministic.
"""

from __future__ import annotations

import os
import sys
import pytest

# Force Qt to run without a display before any Qt import happens.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

NOW = 1_700_000_000.0
DAY = 86400.0


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def qapp():
    """One QCoreApplication for the entire test session."""
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    yield app


@pytest.fixture
def bus(qapp):
    """Fresh EventBus for each test."""
    from persona_core.events import EventBus

    return EventBus()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store(clock):
    from persona_core.memory.store import InMemoryMemoryStore

    return InMemoryMemoryStore(clock=clock)


@pytest.fixture
def days_ago():
    """Timestamp helper: ``days_ago(3)`` is three days before ``NOW``."""
    return lambda days: NOW - days * DAY
