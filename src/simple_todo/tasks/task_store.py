# src/simple_todo/tasks/task_store.py

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from ..core.ports import KeyValueStore
from ..errors import PersistenceCorruptionError, ValidationError
from .dates import next_occurrence
from .merge import merge_tasks
from .ordering import filter_counts, filter_tasks, sort_tasks
from .task_models import (
    Category,
    ChecklistItem,
    ImportStrategy,
    Priority,
    Recurrence,
    Task,
    TaskFilter,
    new_id,
    normalize_tasks,
    now_ms,
    tasks_to_records,
)

logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
ORDER_KEY = "taskOrder"
FINGERPRINTS_KEY = "importedFingerprints"

_UNSET: Any = object()
UNSET = _UNSET  # "keep the previous value" marker for update()


@dataclass(frozen=True, slots=True)
class TaskSnapshot:
    """Immutable view handed to presentation code."""

    tasks: tuple[Task, ...]  # sorted + filtered
    all_tasks: tuple[Task, ...]  # full collection, stored order
    filter: TaskFilter

    def find(self, task_id: str) -> Task | None:
        for t in self.all_tasks:
            if t.id == task_id:
                return t
        return None


SnapshotListener = Callable[[TaskSnapshot], None]


class TaskStore:
    """
    Canonical in-memory task collection and the only writer of its persisted state.

    Every mutation replaces task values (dataclasses.replace), re-sorts, then
    writes `tasks` / `taskOrder` to the key-value store. The write is a
    trailing best-effort step: a failure is logged, memory is not rolled back.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        clock: Callable[[], int] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._kv = kv
        self._clock = clock or now_ms
        self._new_id = id_factory or new_id

        self._tasks: list[Task] = []
        self._order: list[str] = []
        self._fingerprints: list[str] = []
        self._filter = TaskFilter.ALL
        self._listeners: list[SnapshotListener] = []
        self._disposed = False

        self._load()
        logger.info(
            "TaskStore ready origin=%s total=%s custom_order=%s",
            getattr(kv, "origin", "?"),
            len(self._tasks),
            bool(self._order),
        )

    def dispose(self) -> None:
        self._listeners.clear()
        self._disposed = True
        logger.debug("TaskStore disposed")

    # ---- loading / persistence ----

    def _read_json(self, key: str) -> Any:
        raw = self._kv.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def _load(self) -> None:
        try:
            value = self._read_json(TASKS_KEY)
            self._tasks = [] if value is None else self._parse_tasks(value)
        except (ValueError, OverflowError, RecursionError, PersistenceCorruptionError):
            logger.exception("Persisted tasks are corrupted; starting with an empty list.")
            self._tasks = []

        try:
            self._order = self._parse_ids(self._read_json(ORDER_KEY))
        except (ValueError, RecursionError):
            logger.warning("Persisted task order is corrupted; ignoring it.")
            self._order = []

        try:
            self._fingerprints = self._parse_ids(self._read_json(FINGERPRINTS_KEY))
        except (ValueError, RecursionError):
            logger.warning("Persisted import fingerprints are corrupted; ignoring them.")
            self._fingerprints = []

        self._tasks = sort_tasks(self._tasks, self._order)

    def _parse_tasks(self, value: Any) -> list[Task]:
        return normalize_tasks(value, now=self._clock())

    @staticmethod
    def _parse_ids(value: Any) -> list[str]:
        if value is None:
            return []
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError("expected a list of strings")
        return list(value)

    def _write(self, key: str, value: Any) -> None:
        try:
            self._kv.set(key, json.dumps(value, ensure_ascii=False))
        except Exception:
            logger.exception("Failed to persist key=%s", key)

    def _persist(self, *, order: bool = False) -> None:
        self._write(TASKS_KEY, tasks_to_records(self._tasks))
        if order:
            self._write(ORDER_KEY, self._order)

    # ---- internals ----

    def _ensure_live(self) -> None:
        if self._disposed:
            raise RuntimeError("TaskStore has been disposed")

    def _index_of(self, task_id: str) -> int | None:
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        return None

    def _commit(self, tasks: list[Task], *, order_changed: bool = False) -> TaskSnapshot:
        ids = {t.id for t in tasks}
        pruned = [task_id for task_id in self._order if task_id in ids]
        if len(pruned) != len(self._order):
            self._order = pruned
            order_changed = True

        self._tasks = sort_tasks(tasks, self._order)
        self._persist(order=order_changed)
        return self._publish()

    def _publish(self) -> TaskSnapshot:
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Task snapshot listener failed")
        return snap

    def _bump(self, task: Task, now: int) -> int:
        return max(now, task.updated_at)

    # ---- read API ----

    @property
    def filter(self) -> TaskFilter:
        return self._filter

    @property
    def all_tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    @property
    def custom_order(self) -> tuple[str, ...]:
        return tuple(self._order)

    @property
    def imported_fingerprints(self) -> tuple[str, ...]:
        return tuple(self._fingerprints)

    def snapshot(self) -> TaskSnapshot:
        visible = filter_tasks(sort_tasks(self._tasks, self._order), self._filter, now=self._clock())
        return TaskSnapshot(tasks=tuple(visible), all_tasks=tuple(self._tasks), filter=self._filter)

    def get(self, task_id: str) -> Task | None:
        i = self._index_of(task_id)
        return None if i is None else self._tasks[i]

    def counts(self) -> dict[TaskFilter, int]:
        return filter_counts(self._tasks, now=self._clock())

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_filter(self, task_filter: TaskFilter) -> TaskSnapshot:
        self._filter = TaskFilter(task_filter)
        return self._publish()

    # ---- mutations ----

    def add(
        self,
        text: str,
        priority: Priority = Priority.LOW,
        category: Category = Category.GENERAL,
        due_date: int | None = None,
        recurrence: Recurrence | None = None,
    ) -> TaskSnapshot:
        self._ensure_live()
        if not text or not text.strip():
            logger.debug("add ignored: empty text")
            return self.snapshot()

        now = self._clock()
        task = Task(
            id=self._new_id(),
            text=text,
            completed=False,
            priority=Priority(priority),
            category=Category(category),
            created_at=now,
            updated_at=now,
            due_date=due_date,
            recurrence=Recurrence(recurrence) if recurrence and due_date is not None else None,
        )
        logger.debug("Task added id=%s priority=%s due=%s", task.id, task.priority, due_date)
        return self._commit([*self._tasks, task])

    def toggle(self, task_id: str) -> TaskSnapshot:
        self._ensure_live()
        i = self._index_of(task_id)
        if i is None:
            logger.debug("toggle ignored: unknown id=%s", task_id)
            return self.snapshot()

        now = self._clock()
        task = self._tasks[i]
        tasks = list(self._tasks)

        if task.completed:
            tasks[i] = replace(task, completed=False, completed_at=None, updated_at=self._bump(task, now))
            return self._commit(tasks)

        tasks[i] = replace(task, completed=True, completed_at=now, updated_at=self._bump(task, now))

        if task.recurrence is not None and task.due_date is not None:
            sibling = replace(
                task,
                id=self._new_id(),
                completed=False,
                completed_at=None,
                created_at=now,
                updated_at=now,
                due_date=next_occurrence(task.due_date, task.recurrence),
            )
            tasks.append(sibling)
            logger.info(
                "Recurring task %s completed; next occurrence %s due=%s",
                task.id,
                sibling.id,
                sibling.due_date,
            )

        return self._commit(tasks)

    def delete(self, task_id: str) -> TaskSnapshot:
        self._ensure_live()
        tasks = [t for t in self._tasks if t.id != task_id]
        if len(tasks) == len(self._tasks):
            logger.debug("delete ignored: unknown id=%s", task_id)
            return self.snapshot()
        return self._commit(tasks)

    def update(
        self,
        task_id: str,
        *,
        text: str,
        priority: Priority,
        category: Category,
        checklist: Sequence[ChecklistItem],
        notes: str | None = _UNSET,
        due_date: int | None = _UNSET,
        recurrence: Recurrence | None = _UNSET,
    ) -> TaskSnapshot:
        """
        Replace the mutable fields of a task.

        notes / due_date / recurrence: leave as UNSET to keep the current value,
        pass None to clear it. Clearing due_date also clears recurrence.
        """
        self._ensure_live()
        i = self._index_of(task_id)
        if i is None:
            logger.debug("update ignored: unknown id=%s", task_id)
            return self.snapshot()
        if not text or not text.strip():
            logger.debug("update ignored: empty text id=%s", task_id)
            return self.snapshot()

        items = tuple(checklist)
        item_ids = [item.id for item in items]
        if len(set(item_ids)) != len(item_ids):
            raise ValidationError("Checklist item ids must be unique within a task.")

        task = self._tasks[i]
        new_notes = task.notes if notes is _UNSET else notes
        new_due = task.due_date if due_date is _UNSET else due_date
        new_rec = task.recurrence if recurrence is _UNSET else recurrence
        if new_due is None:
            new_rec = None

        tasks = list(self._tasks)
        tasks[i] = replace(
            task,
            text=text,
            priority=Priority(priority),
            category=Category(category),
            checklist=items,
            notes=new_notes,
            due_date=new_due,
            recurrence=Recurrence(new_rec) if new_rec is not None else None,
            updated_at=self._bump(task, self._clock()),
        )
        return self._commit(tasks)

    def reorder(self, ordered: Iterable[Task | str]) -> TaskSnapshot:
        """Adopt a full permutation of the current tasks as the custom order."""
        self._ensure_live()
        ids = [item if isinstance(item, str) else item.id for item in ordered]
        current = {t.id: t for t in self._tasks}

        if len(ids) != len(current) or set(ids) != set(current):
            raise ValidationError("Reorder must be a permutation of the current tasks.")

        self._order = ids
        # Stored order follows the gesture; the sorted view still sinks completed tasks.
        self._tasks = [current[task_id] for task_id in ids]
        self._persist(order=True)
        return self._publish()

    def clear_completed(self) -> TaskSnapshot:
        self._ensure_live()
        remaining = [t for t in self._tasks if not t.completed]
        if len(remaining) == len(self._tasks):
            return self.snapshot()
        logger.info("Cleared %d completed tasks", len(self._tasks) - len(remaining))
        return self._commit(remaining)

    def import_tasks(self, batch: Sequence[Task], strategy: ImportStrategy) -> TaskSnapshot:
        self._ensure_live()
        merged = merge_tasks(self._tasks, batch, ImportStrategy(strategy))
        logger.info("Imported %d tasks strategy=%s total=%d", len(batch), strategy, len(merged))
        return self._commit(merged)

    # ---- import fingerprints ----

    def has_fingerprint(self, fingerprint: str) -> bool:
        return fingerprint in self._fingerprints

    def record_fingerprint(self, fingerprint: str) -> None:
        self._ensure_live()
        if fingerprint in self._fingerprints:
            return
        # No eviction: history grows with each distinct import.
        self._fingerprints.append(fingerprint)
        self._write(FINGERPRINTS_KEY, self._fingerprints)

    def forget_fingerprint(self, fingerprint: str) -> None:
        self._ensure_live()
        if fingerprint not in self._fingerprints:
            return
        self._fingerprints.remove(fingerprint)
        self._write(FINGERPRINTS_KEY, self._fingerprints)

    # ---- cross-context sync ----

    def apply_external_write(self, key: str, raw: str | None) -> bool:
        """
        Adopt a value another context wrote to the shared store.

        Whole-value last-writer-wins. Nothing is written back. Returns False
        (and keeps the current state) when the value does not parse.
        """
        if self._disposed:
            return False

        try:
            value = None if raw is None else json.loads(raw)
            if key == TASKS_KEY:
                tasks = [] if value is None else self._parse_tasks(value)
                self._tasks = sort_tasks(tasks, self._order)
            elif key == ORDER_KEY:
                self._order = self._parse_ids(value)
                self._tasks = sort_tasks(self._tasks, self._order)
            elif key == FINGERPRINTS_KEY:
                self._fingerprints = self._parse_ids(value)
                return True
            else:
                return False
        except (ValueError, OverflowError, RecursionError, PersistenceCorruptionError):
            logger.warning("Ignoring unreadable external write key=%s", key, exc_info=True)
            return False

        logger.debug("Applied external write key=%s total=%d", key, len(self._tasks))
        self._publish()
        return True
