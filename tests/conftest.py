# tests/conftest.py

from __future__ import annotations

import os
from datetime import timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Default to the memory backend so importing the app has no filesystem side effects
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from task_tracker.db import SQLiteTaskStore  # noqa: E402
from task_tracker.main import app  # noqa: E402
from task_tracker.manager import TaskManager, get_task_manager  # noqa: E402
from task_tracker.store import InMemoryTaskStore, TaskStore  # noqa: E402

from .fakes import FakeClock  # noqa: E402


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> TaskStore:
    """Every store-level and manager-level test runs against both backends."""
    if request.param == "sqlite":
        return SQLiteTaskStore(str(tmp_path / "tasks.db"))
    return InMemoryTaskStore()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def manager(store: TaskStore, clock: FakeClock) -> TaskManager:
    return TaskManager(store, clock=clock, tz=timezone.utc)


@pytest.fixture()
def client(clock: FakeClock):
    """
    TestClient whose requests go to a fresh in-memory manager.
    """
    fresh = TaskManager(InMemoryTaskStore(), clock=clock, tz=timezone.utc)
    app.dependency_overrides[get_task_manager] = lambda: fresh
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
