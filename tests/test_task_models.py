# tests/test_task_models.py

from __future__ import annotations

import pytest

from simple_todo.errors import PersistenceCorruptionError
from simple_todo.tasks.task_models import (
    Category,
    Priority,
    Recurrence,
    Task,
    normalize_task,
    normalize_tasks,
)


def test_normalize_fills_defaults() -> None:
    task = normalize_task({"id": "a", "text": "milk"}, now=1_000)

    assert task.priority == Priority.LOW
    assert task.category == Category.GENERAL
    assert task.checklist == ()
    assert task.completed is False
    assert task.created_at == 1_000
    assert task.updated_at == 1_000  # falls back to createdAt


def test_normalize_drops_unknown_enum_values_and_orphan_fields() -> None:
    task = normalize_task(
        {
            "id": "a",
            "text": "x",
            "priority": "urgent",
            "category": "hobby",
            "recurrence": "weekly",  # no dueDate -> dropped
            "completedAt": 5,  # not completed -> dropped
            "createdAt": 10,
            "updatedAt": 20,
        }
    )

    assert task.priority == Priority.LOW
    assert task.category == Category.GENERAL
    assert task.recurrence is None
    assert task.completed_at is None
    assert task.updated_at == 20


def test_normalize_keeps_recurrence_with_due_date() -> None:
    task = normalize_task({"id": "a", "text": "x", "dueDate": 100, "recurrence": "monthly", "createdAt": 1})
    assert task.recurrence == Recurrence.MONTHLY


@pytest.mark.parametrize("bad", [float("inf"), float("-inf"), float("nan"), 10**18, -(10**18)])
def test_normalize_drops_unusable_timestamps(bad: float) -> None:
    task = normalize_task(
        {
            "id": "a",
            "text": "x",
            "completed": True,
            "createdAt": bad,
            "updatedAt": bad,
            "dueDate": bad,
            "recurrence": "daily",
            "completedAt": bad,
        },
        now=1_000,
    )

    assert task.created_at == 1_000
    assert task.updated_at == 1_000
    assert task.due_date is None
    assert task.recurrence is None  # no usable dueDate
    assert task.completed_at is None


def test_normalize_truncates_float_timestamps() -> None:
    task = normalize_task({"id": "a", "text": "x", "createdAt": 1_700_000_000_000.7, "dueDate": 1.5e12})

    assert task.created_at == 1_700_000_000_000
    assert task.due_date == 1_500_000_000_000
    assert isinstance(task.due_date, int)


def test_completed_flags_must_be_literal_true() -> None:
    task = normalize_task(
        {
            "id": "a",
            "text": "x",
            "completed": "false",
            "completedAt": 5,
            "checklist": [
                {"id": "c1", "text": "one", "completed": "false"},
                {"id": "c2", "text": "two", "completed": 1},
                {"id": "c3", "text": "three", "completed": True},
            ],
        }
    )

    assert task.completed is False
    assert task.completed_at is None
    assert [i.completed for i in task.checklist] == [False, False, True]


def test_normalize_tasks_skips_non_objects_and_reissues_duplicate_ids() -> None:
    tasks = normalize_tasks(
        [
            {"id": "a", "text": "one", "createdAt": 1},
            "garbage",
            {"id": "a", "text": "two", "createdAt": 2},
        ],
        now=5,
    )

    assert [t.text for t in tasks] == ["one", "two"]
    assert tasks[0].id == "a"
    assert tasks[1].id != "a"


def test_normalize_tasks_rejects_non_list() -> None:
    with pytest.raises(PersistenceCorruptionError):
        normalize_tasks({"tasks": []})


def test_to_record_uses_camel_case_and_omits_absent_optionals() -> None:
    task = Task(
        id="a",
        text="x",
        completed=False,
        priority=Priority.HIGH,
        category=Category.WORK,
        created_at=1,
        updated_at=2,
    )
    rec = task.to_record()

    assert rec["createdAt"] == 1
    assert rec["updatedAt"] == 2
    assert rec["priority"] == "high"
    assert "dueDate" not in rec
    assert "notes" not in rec
    assert "completedAt" not in rec
    assert normalize_task(rec) == task
