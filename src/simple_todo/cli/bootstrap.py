# src/simple_todo/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the key-value backend, TaskStore and share/import service into AppState,
- tears everything down again (dispose).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import SharedKeyValueStore
from ..core.state import AppState
from ..sharing.codec import ShareSession
from ..sharing.importer import ImportService
from ..storage.kv_store import SqliteKeyValueStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, kv: SharedKeyValueStore | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the backend) injectable makes the app easier to test
    and avoids hidden global config reads. If settings is None, falls back to
    get_settings(); if kv is None, opens the SQLite store at settings.store_path.
    """
    if settings is None:
        settings = get_settings()

    if kv is None:
        _ensure_local_dirs(settings)
        kv = SqliteKeyValueStore(settings.store_path)

    task_store = TaskStore(kv)
    session = ShareSession(max_bytes=int(getattr(settings, "share_max_bytes", 200 * 1024)))

    return AppState(
        settings=settings,
        kv=kv,
        task_store=task_store,
        importer=ImportService(task_store, session),
    )


def dispose_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        with state.lock:
            state.task_store.dispose()
    except Exception:
        logger.exception("TaskStore dispose failed.")

    close = getattr(state.kv, "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            logger.debug("Key-value store close failed.", exc_info=True)
