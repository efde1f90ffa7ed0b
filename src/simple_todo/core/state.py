# src/simple_todo/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from ..sharing.importer import ImportPreview, ImportService
from ..tasks.task_store import TaskStore
from .ports import SharedKeyValueStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    kv: SharedKeyValueStore
    task_store: TaskStore
    importer: ImportService

    # Serializes TaskStore access between the console and the sync thread.
    lock: threading.Lock = field(default_factory=threading.Lock)
    # Decoded link waiting for the user to pick merge/replace.
    pending_import: ImportPreview | None = None
