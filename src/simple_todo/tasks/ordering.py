# src/simple_todo/tasks/ordering.py

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .dates import is_overdue, is_today, is_upcoming
from .task_models import Priority, Task, TaskFilter, now_ms


def sort_tasks(tasks: Iterable[Task], custom_order: Sequence[str] = ()) -> list[Task]:
    """
    Deterministic, stable ordering.

    - completed tasks always go last (their relative input order is kept)
    - no custom order: priority rank, then newest created first
    - custom order: position in the order list; unlisted tasks after listed ones
    """
    items = list(tasks)

    if not custom_order:
        def default_key(t: Task) -> tuple[int, int, int]:
            if t.completed:
                return (1, 0, 0)
            return (0, t.priority.rank, -t.created_at)

        return sorted(items, key=default_key)

    position = {task_id: i for i, task_id in enumerate(custom_order)}
    missing = len(position)

    def custom_key(t: Task) -> tuple[int, int]:
        if t.completed:
            return (1, 0)
        return (0, position.get(t.id, missing))

    return sorted(items, key=custom_key)


def matches_filter(task: Task, task_filter: TaskFilter, *, now: int) -> bool:
    if task_filter == TaskFilter.ALL:
        return True
    if task_filter == TaskFilter.ACTIVE:
        return not task.completed
    if task_filter == TaskFilter.COMPLETED:
        return task.completed
    if task_filter == TaskFilter.HIGH:
        return task.priority == Priority.HIGH

    if task.due_date is None or task.completed:
        return False
    if task_filter == TaskFilter.TODAY:
        # overdue work is folded into "today"
        return is_today(task.due_date, now=now) or is_overdue(task.due_date, now=now)
    if task_filter == TaskFilter.UPCOMING:
        return is_upcoming(task.due_date, now=now)
    return False


def filter_tasks(
    tasks: Iterable[Task],
    task_filter: TaskFilter,
    *,
    now: int | None = None,
) -> list[Task]:
    ts = now_ms() if now is None else now
    return [t for t in tasks if matches_filter(t, task_filter, now=ts)]


def filter_counts(tasks: Sequence[Task], *, now: int | None = None) -> dict[TaskFilter, int]:
    ts = now_ms() if now is None else now
    return {f: sum(1 for t in tasks if matches_filter(t, f, now=ts)) for f in TaskFilter}
