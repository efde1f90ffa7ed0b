# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from simple_todo.cli.bootstrap import create_initial_state
from simple_todo.core.state import AppState
from simple_todo.storage.kv_store import InMemoryKeyValueStore
from simple_todo.tasks.task_store import TaskStore

from .fakes import FakeClock, SequentialIds


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="simple-todo-test",
        log_level="DEBUG",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        store_path=tmp_path / "store.sqlite3",
        # Sharing
        share_base_url="https://simple-todo.local/",
        share_max_bytes=200 * 1024,
        # Features
        console_enabled=False,
        sync_enabled=False,
        sync_interval_seconds=0.05,
    )


@pytest.fixture()
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(origin="local")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(kv: InMemoryKeyValueStore, clock: FakeClock) -> TaskStore:
    """TaskStore over an in-memory backend with a manual clock and predictable ids."""
    return TaskStore(kv, clock=clock, id_factory=SequentialIds())


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired through the real composition root.

    NOTE: The key-value backend is in-memory; the SQLite backend has its
    own tests in test_kv_store.py.
    """
    return create_initial_state(settings=settings, kv=InMemoryKeyValueStore())
