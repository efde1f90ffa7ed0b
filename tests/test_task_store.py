# tests/test_task_store.py

from __future__ import annotations

import json

import pytest

from simple_todo.errors import ValidationError
from simple_todo.storage.kv_store import InMemoryKeyValueStore
from simple_todo.tasks.dates import next_occurrence
from simple_todo.tasks.task_models import (
    Category,
    ChecklistItem,
    ImportStrategy,
    Priority,
    Recurrence,
    TaskFilter,
)
from simple_todo.tasks.task_store import FINGERPRINTS_KEY, ORDER_KEY, TASKS_KEY, TaskStore

from .fakes import FakeClock, FlakyKeyValueStore, SequentialIds, local_ms, make_task


def _persisted(kv: InMemoryKeyValueStore, key: str):
    raw = kv.get(key)
    return None if raw is None else json.loads(raw)


def test_add_sets_defaults_and_persists(store: TaskStore, kv, clock: FakeClock) -> None:
    snap = store.add("Buy milk")

    assert len(snap.tasks) == 1
    task = snap.tasks[0]
    assert task.id == "t1"
    assert task.priority == Priority.LOW
    assert task.category == Category.GENERAL
    assert task.created_at == task.updated_at == clock.now
    assert _persisted(kv, TASKS_KEY)[0]["text"] == "Buy milk"


def test_add_blank_text_is_a_noop(store: TaskStore, kv) -> None:
    store.add("   ")
    assert store.all_tasks == ()
    assert kv.get(TASKS_KEY) is None


def test_add_ignores_recurrence_without_due_date(store: TaskStore) -> None:
    snap = store.add("x", recurrence=Recurrence.DAILY)
    assert snap.tasks[0].recurrence is None


def test_toggle_sets_and_clears_completed_at(store: TaskStore, clock: FakeClock) -> None:
    store.add("x")
    clock.advance(1_000)

    done = store.toggle("t1").find("t1")
    assert done is not None and done.completed
    assert done.completed_at == clock.now

    clock.advance(1_000)
    reopened = store.toggle("t1").find("t1")
    assert reopened is not None and not reopened.completed
    assert reopened.completed_at is None
    assert reopened.updated_at == clock.now


def test_completing_recurring_task_schedules_next_occurrence(store: TaskStore, clock: FakeClock) -> None:
    due = local_ms(2024, 3, 15, 9, 0)
    store.add("Water plants", priority=Priority.HIGH, category=Category.PERSONAL, due_date=due, recurrence=Recurrence.WEEKLY)
    store.update(
        "t1",
        text="Water plants",
        priority=Priority.HIGH,
        category=Category.PERSONAL,
        checklist=[ChecklistItem(id="c1", text="ferns", completed=True)],
    )
    clock.advance(60_000)

    snap = store.toggle("t1")

    assert len(snap.all_tasks) == 2
    original = snap.find("t1")
    sibling = snap.find("t2")
    assert original is not None and original.completed and original.completed_at == clock.now
    assert sibling is not None and not sibling.completed
    assert sibling.due_date == next_occurrence(due, Recurrence.WEEKLY)
    assert sibling.recurrence == Recurrence.WEEKLY
    assert sibling.priority == Priority.HIGH
    assert sibling.category == Category.PERSONAL
    assert sibling.checklist == original.checklist
    assert sibling.created_at == clock.now

    # Reopening the original does not create yet another occurrence.
    assert len(store.toggle("t1").all_tasks) == 2


def test_unknown_ids_are_noops(store: TaskStore) -> None:
    store.add("x")
    before = store.all_tasks

    store.toggle("nope")
    store.delete("nope")
    store.update("nope", text="y", priority=Priority.LOW, category=Category.GENERAL, checklist=())

    assert store.all_tasks == before


def test_update_keeps_or_clears_optional_fields(store: TaskStore) -> None:
    due = local_ms(2024, 3, 20)
    store.add("x", due_date=due, recurrence=Recurrence.DAILY)
    common = {"text": "x", "priority": Priority.MEDIUM, "category": Category.WORK, "checklist": ()}

    store.update("t1", notes="remember", **common)
    task = store.get("t1")
    assert task is not None
    assert task.notes == "remember"
    assert task.due_date == due  # left unset -> kept
    assert task.recurrence == Recurrence.DAILY

    store.update("t1", notes=None, due_date=None, **common)
    task = store.get("t1")
    assert task is not None
    assert task.notes is None
    assert task.due_date is None
    assert task.recurrence is None  # cleared together with the due date


def test_update_blank_text_and_duplicate_checklist_ids(store: TaskStore) -> None:
    store.add("x")

    store.update("t1", text="  ", priority=Priority.HIGH, category=Category.WORK, checklist=())
    assert store.get("t1").text == "x"  # type: ignore[union-attr]

    with pytest.raises(ValidationError):
        store.update(
            "t1",
            text="x",
            priority=Priority.LOW,
            category=Category.GENERAL,
            checklist=[ChecklistItem(id="c", text="a"), ChecklistItem(id="c", text="b")],
        )


def test_updated_at_never_goes_backwards(store: TaskStore, clock: FakeClock) -> None:
    store.add("x")
    first = store.get("t1").updated_at  # type: ignore[union-attr]

    clock.advance(-10_000)  # wall clock jumped back
    store.toggle("t1")

    assert store.get("t1").updated_at >= first  # type: ignore[union-attr]


def test_reorder_persists_custom_order(store: TaskStore, kv) -> None:
    for text in ("a", "b", "c"):
        store.add(text)

    snap = store.reorder(["t3", "t1", "t2"])

    assert [t.id for t in snap.tasks] == ["t3", "t1", "t2"]
    assert _persisted(kv, ORDER_KEY) == ["t3", "t1", "t2"]

    # New tasks go after the listed ones.
    store.add("d")
    assert [t.id for t in store.snapshot().tasks] == ["t3", "t1", "t2", "t4"]


def test_reorder_requires_a_permutation(store: TaskStore) -> None:
    store.add("a")
    store.add("b")

    with pytest.raises(ValidationError):
        store.reorder(["t1"])
    with pytest.raises(ValidationError):
        store.reorder(["t1", "t2", "zzz"])


def test_delete_and_clear_completed_prune_order(store: TaskStore, kv) -> None:
    for text in ("a", "b", "c"):
        store.add(text)
    store.reorder(["t2", "t3", "t1"])

    store.delete("t3")
    assert store.custom_order == ("t2", "t1")

    store.toggle("t2")
    snap = store.clear_completed()
    assert [t.id for t in snap.all_tasks] == ["t1"]
    assert _persisted(kv, ORDER_KEY) == ["t1"]


def test_filter_and_counts(store: TaskStore) -> None:
    store.add("a", priority=Priority.HIGH)
    store.add("b")
    store.toggle("t2")

    snap = store.set_filter(TaskFilter.ACTIVE)
    assert [t.id for t in snap.tasks] == ["t1"]
    assert [t.id for t in snap.all_tasks] == ["t1", "t2"]

    counts = store.counts()
    assert counts[TaskFilter.COMPLETED] == 1
    assert counts[TaskFilter.HIGH] == 1


def test_subscribe_and_unsubscribe(store: TaskStore) -> None:
    seen = []
    unsubscribe = store.subscribe(lambda snap: seen.append(len(snap.all_tasks)))

    store.add("a")
    store.add("b")
    unsubscribe()
    store.add("c")

    assert seen == [1, 2]


def test_state_survives_reload(kv, clock: FakeClock) -> None:
    first = TaskStore(kv, clock=clock, id_factory=SequentialIds())
    first.add("a", due_date=local_ms(2024, 4, 1), recurrence=Recurrence.MONTHLY)
    first.add("b")
    first.reorder(["t2", "t1"])
    first.record_fingerprint("abc")

    second = TaskStore(kv, clock=clock)

    assert second.all_tasks == first.all_tasks
    assert second.custom_order == ("t2", "t1")
    assert second.has_fingerprint("abc")
    assert _persisted(kv, FINGERPRINTS_KEY) == ["abc"]


@pytest.mark.parametrize("raw", ['{"tasks": []}', "not json at all"])
def test_corrupted_tasks_fall_back_to_empty(kv, raw: str) -> None:
    kv.set(TASKS_KEY, raw)

    store = TaskStore(kv)

    assert store.all_tasks == ()


@pytest.mark.parametrize("bad", ["1e400", "Infinity", "-Infinity", "1000000000000000000"])
def test_unusable_persisted_timestamps_are_dropped(kv, clock: FakeClock, bad: str) -> None:
    record = f'{{"id": "a", "text": "x", "createdAt": {bad}, "dueDate": {bad}, "recurrence": "weekly"}}'
    kv.set(TASKS_KEY, f"[{record}]")

    store = TaskStore(kv, clock=clock)

    task = store.get("a")
    assert task is not None
    assert task.created_at == clock.now
    assert task.due_date is None
    assert task.recurrence is None
    # every filter, including the date-based ones
    assert store.counts()[TaskFilter.ALL] == 1
    assert store.set_filter(TaskFilter.UPCOMING).tasks == ()


def test_failed_write_keeps_memory_state(clock: FakeClock) -> None:
    kv = FlakyKeyValueStore()
    store = TaskStore(kv, clock=clock)

    snap = store.add("still here")

    assert kv.write_attempts == 1
    assert [t.text for t in snap.tasks] == ["still here"]


def test_import_merges_and_replaces(store: TaskStore) -> None:
    store.add("local")

    store.import_tasks([make_task("x", updated_at=1)], ImportStrategy.MERGE)
    assert {t.id for t in store.all_tasks} == {"t1", "x"}

    store.import_tasks([make_task("y")], ImportStrategy.REPLACE)
    assert [t.id for t in store.all_tasks] == ["y"]


def test_record_fingerprint_is_idempotent(store: TaskStore) -> None:
    store.record_fingerprint("f1")
    store.record_fingerprint("f1")
    store.record_fingerprint("f2")
    assert store.imported_fingerprints == ("f1", "f2")


def test_forget_fingerprint_persists(store: TaskStore, kv) -> None:
    store.record_fingerprint("f1")
    store.record_fingerprint("f2")

    store.forget_fingerprint("f1")
    store.forget_fingerprint("never-seen")

    assert store.imported_fingerprints == ("f2",)
    assert _persisted(kv, FINGERPRINTS_KEY) == ["f2"]
    assert not TaskStore(kv).has_fingerprint("f1")


def test_dispose_rejects_further_mutations(store: TaskStore) -> None:
    store.dispose()
    with pytest.raises(RuntimeError):
        store.add("x")
    assert store.apply_external_write(TASKS_KEY, "[]") is False
