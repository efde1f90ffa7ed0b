# src/simple_todo/tasks/task_models.py

from __future__ import annotations

import logging
import math
import time
import uuid
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any

from ..errors import PersistenceCorruptionError

logger = logging.getLogger(__name__)

# Timestamps outside [0002-01-01, 9998-01-01) UTC are dropped at load time so
# local-date math (day bounds, month/year recurrence steps) stays inside the
# range datetime can represent.
MIN_TIMESTAMP_MS = -62_104_060_800_000
MAX_TIMESTAMP_MS = 253_339_228_800_000


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def from_raw(cls, raw: Any) -> Priority:
        try:
            return cls(raw)
        except ValueError:
            return cls.LOW


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class Category(StrEnum):
    WORK = "work"
    PERSONAL = "personal"
    SHOPPING = "shopping"
    HEALTH = "health"
    FINANCE = "finance"
    GENERAL = "general"

    @classmethod
    def from_raw(cls, raw: Any) -> Category:
        try:
            return cls(raw)
        except ValueError:
            return cls.GENERAL


class Recurrence(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def from_raw(cls, raw: Any) -> Recurrence | None:
        if raw is None:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


class TaskFilter(StrEnum):
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"
    HIGH = "high"
    TODAY = "today"
    UPCOMING = "upcoming"


class ImportStrategy(StrEnum):
    REPLACE = "replace"
    MERGE = "merge"


@dataclass(frozen=True, slots=True)
class ChecklistItem:
    id: str
    text: str
    completed: bool = False

    def to_record(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "completed": self.completed}


@dataclass(frozen=True, slots=True)
class Task:
    """
    One task. Values are immutable: the store replaces, never mutates.

    Timestamps are millisecond epochs. `due_date` has date-only meaning for
    the scheduling predicates (see tasks/dates.py).
    """

    id: str
    text: str
    completed: bool
    priority: Priority
    category: Category
    created_at: int
    updated_at: int

    checklist: tuple[ChecklistItem, ...] = ()
    notes: str | None = None
    due_date: int | None = None
    recurrence: Recurrence | None = None
    completed_at: int | None = None

    def to_record(self) -> dict[str, Any]:
        """Persisted/shared shape (camelCase keys, absent optionals omitted)."""
        rec: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "priority": self.priority.value,
            "category": self.category.value,
            "checklist": [item.to_record() for item in self.checklist],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.notes is not None:
            rec["notes"] = self.notes
        if self.due_date is not None:
            rec["dueDate"] = self.due_date
        if self.recurrence is not None:
            rec["recurrence"] = self.recurrence.value
        if self.completed_at is not None:
            rec["completedAt"] = self.completed_at
        return rec


def tasks_to_records(tasks: list[Task] | tuple[Task, ...]) -> list[dict[str, Any]]:
    return [t.to_record() for t in tasks]


# ---- normalization (load-time defaults) ----


def _as_timestamp(raw: Any) -> int | None:
    # bool is an int subclass; never treat True/False as a timestamp.
    if isinstance(raw, bool):
        return None
    if isinstance(raw, float):
        if not math.isfinite(raw):
            return None
        raw = int(raw)
    if not isinstance(raw, int):
        return None
    if not MIN_TIMESTAMP_MS <= raw < MAX_TIMESTAMP_MS:
        return None
    return raw


def _as_str(raw: Any, default: str) -> str:
    return raw if isinstance(raw, str) else default


def normalize_checklist(raw: Any) -> tuple[ChecklistItem, ...]:
    if not isinstance(raw, list):
        return ()
    seen: set[str] = set()
    items: list[ChecklistItem] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        item_id = entry.get("id")
        if not isinstance(item_id, str) or not item_id or item_id in seen:
            item_id = new_id()
        seen.add(item_id)
        items.append(
            ChecklistItem(
                id=item_id,
                text=_as_str(entry.get("text"), ""),
                completed=entry.get("completed") is True,
            )
        )
    return tuple(items)


def normalize_task(raw: dict[str, Any], *, now: int | None = None) -> Task:
    """
    Build a Task from a loosely-typed record using the fixed default table.

    Missing or ill-typed fields fall back to defaults; cross-field invariants
    (recurrence needs dueDate, completedAt needs completed) are enforced here.
    """
    ts = now_ms() if now is None else now

    task_id = raw.get("id")
    if not isinstance(task_id, str) or not task_id:
        task_id = new_id()

    completed = raw.get("completed") is True
    created_at = _as_timestamp(raw.get("createdAt"))
    if created_at is None:
        created_at = ts
    updated_at = _as_timestamp(raw.get("updatedAt"))
    if updated_at is None:
        updated_at = created_at

    due_date = _as_timestamp(raw.get("dueDate"))
    recurrence = Recurrence.from_raw(raw.get("recurrence")) if due_date is not None else None
    completed_at = _as_timestamp(raw.get("completedAt")) if completed else None

    notes = raw.get("notes")

    return Task(
        id=task_id,
        text=_as_str(raw.get("text"), ""),
        completed=completed,
        priority=Priority.from_raw(raw.get("priority")),
        category=Category.from_raw(raw.get("category")),
        created_at=created_at,
        updated_at=updated_at,
        checklist=normalize_checklist(raw.get("checklist")),
        notes=notes if isinstance(notes, str) else None,
        due_date=due_date,
        recurrence=recurrence,
        completed_at=completed_at,
    )


def normalize_tasks(value: Any, *, now: int | None = None) -> list[Task]:
    """Normalize a whole collection; a non-list top-level value is corruption."""
    if not isinstance(value, list):
        raise PersistenceCorruptionError(
            f"task collection must be a list, got {type(value).__name__}"
        )

    out: list[Task] = []
    seen: set[str] = set()
    for i, raw in enumerate(value):
        if not isinstance(raw, dict):
            logger.warning("Skipping non-object task record at index %s", i)
            continue
        task = normalize_task(raw, now=now)
        if task.id in seen:
            logger.warning("Duplicate task id %s at index %s; issuing a new id", task.id, i)
            task = replace(task, id=new_id())
        seen.add(task.id)
        out.append(task)
    return out
