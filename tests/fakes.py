# tests/fakes.py

from __future__ import annotations

import itertools
from datetime import datetime

from simple_todo.storage.kv_store import InMemoryKeyValueStore
from simple_todo.tasks.dates import to_ms
from simple_todo.tasks.task_models import Category, Priority, Task


def local_ms(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> int:
    """Millisecond epoch of a local wall-clock time."""
    return to_ms(datetime(year, month, day, hour, minute))


class FakeClock:
    """
    Manually driven millisecond clock for TaskStore(clock=...).

    Starts at noon local time on a day without DST transitions.
    """

    def __init__(self, start: int | None = None) -> None:
        self.now = local_ms(2024, 3, 15) if start is None else start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class SequentialIds:
    """Deterministic id_factory: t1, t2, ..."""

    def __init__(self, prefix: str = "t") -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self._prefix}{next(self._counter)}"


class FlakyKeyValueStore(InMemoryKeyValueStore):
    """Reads work, every write fails (simulates a full or locked disk)."""

    def __init__(self) -> None:
        super().__init__()
        self.write_attempts = 0

    def set(self, key: str, value: str) -> None:
        self.write_attempts += 1
        raise OSError("disk full")


def make_task(task_id: str, text: str | None = None, **fields) -> Task:
    """Task with sensible defaults; any field can be overridden."""
    created = fields.pop("created_at", 1_000)
    values = {
        "id": task_id,
        "text": text or task_id,
        "completed": False,
        "priority": Priority.LOW,
        "category": Category.GENERAL,
        "created_at": created,
        "updated_at": fields.pop("updated_at", created),
    }
    values.update(fields)
    return Task(**values)
