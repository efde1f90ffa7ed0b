# src/simple_todo/tasks/analytics.py

"""Read-only statistics over a task collection (progress ring, streak, charts, calendar)."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum

from .dates import day_key, end_of_day, is_same_day, start_of_day, to_local, to_ms
from .task_models import Category, Task

STREAK_LIMIT_DAYS = 365


class StatsRange(StrEnum):
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


_RANGE_DAYS = {StatsRange.WEEK: 7, StatsRange.MONTH: 30, StatsRange.ALL: 30}


@dataclass(frozen=True, slots=True)
class CompletionStats:
    range: StatsRange
    total: int
    velocity: float  # completions per day
    on_time_rate: int  # percent
    by_day: list[tuple[str, int]]
    by_category: list[tuple[Category, int]]


def _shift_days(ms: int, days: int) -> int:
    return to_ms(to_local(ms) + timedelta(days=days))


def _completed(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if t.completed and t.completed_at is not None]


def daily_progress(tasks: Sequence[Task], day_ms: int) -> tuple[int, int, int]:
    """(completed, total, percent) over tasks due or completed on that day."""
    relevant = [
        t
        for t in tasks
        if (t.due_date is not None and is_same_day(t.due_date, day_ms))
        or (t.completed and t.completed_at is not None and is_same_day(t.completed_at, day_ms))
    ]
    done = sum(1 for t in relevant if t.completed)
    total = len(relevant)
    return done, total, round(done * 100 / total) if total else 0


def completion_streak(tasks: Sequence[Task], now: int) -> int:
    """Consecutive days with at least one completion, ending today (or yesterday)."""
    days = {day_key(t.completed_at) for t in tasks if t.completed_at is not None}

    check = now if day_key(now) in days else _shift_days(now, -1)
    streak = 0
    for _ in range(STREAK_LIMIT_DAYS):
        if day_key(check) not in days:
            break
        streak += 1
        check = _shift_days(check, -1)
    return streak


def completions_by_day(tasks: Sequence[Task], days: int, now: int) -> list[tuple[str, int]]:
    counts = Counter(day_key(t.completed_at) for t in _completed(tasks))  # type: ignore[arg-type]
    out: list[tuple[str, int]] = []
    for offset in range(days - 1, -1, -1):
        key = day_key(_shift_days(now, -offset))
        out.append((key, counts.get(key, 0)))
    return out


def category_breakdown(tasks: Sequence[Task]) -> list[tuple[Category, int]]:
    counts = Counter(t.category for t in _completed(tasks))
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)


def on_time_rate(tasks: Sequence[Task]) -> int:
    with_due = [t for t in _completed(tasks) if t.due_date is not None]
    if not with_due:
        return 0
    on_time = sum(1 for t in with_due if t.completed_at <= t.due_date)  # type: ignore[operator]
    return round(on_time * 100 / len(with_due))


def summarize(tasks: Sequence[Task], stats_range: StatsRange, now: int) -> CompletionStats:
    stats_range = StatsRange(stats_range)
    days = _RANGE_DAYS[stats_range]

    if stats_range == StatsRange.ALL:
        in_range = _completed(tasks)
    else:
        start = start_of_day(_shift_days(now, -(days - 1)))
        end = end_of_day(now)
        in_range = [t for t in _completed(tasks) if start <= t.completed_at <= end]  # type: ignore[operator]

    return CompletionStats(
        range=stats_range,
        total=len(in_range),
        velocity=round(len(in_range) / days, 1),
        on_time_rate=on_time_rate(in_range),
        by_day=completions_by_day(in_range, days, now),
        by_category=category_breakdown(in_range),
    )


def tasks_by_day(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    """Calendar grouping: YYYY-MM-DD of the due date -> tasks."""
    grouped: dict[str, list[Task]] = {}
    for t in tasks:
        if t.due_date is None:
            continue
        grouped.setdefault(day_key(t.due_date), []).append(t)
    return grouped
