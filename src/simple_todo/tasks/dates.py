# src/simple_todo/tasks/dates.py

"""
Calendar helpers for due dates.

All inputs are millisecond epochs. Day comparisons use the local wall-clock
date (naive local datetimes), never elapsed time, so DST shifts do not move
a task to another day.
"""

from __future__ import annotations

import calendar
from datetime import datetime, time, timedelta

from .task_models import Recurrence, now_ms


def to_local(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000)


def to_ms(dt: datetime) -> int:
    return round(dt.timestamp() * 1000)


def start_of_day(ms: int) -> int:
    return to_ms(datetime.combine(to_local(ms).date(), time.min))


def end_of_day(ms: int) -> int:
    # 23:59:59.999, matching millisecond resolution
    return to_ms(datetime.combine(to_local(ms).date(), time(23, 59, 59, 999000)))


def day_key(ms: int) -> str:
    return to_local(ms).strftime("%Y-%m-%d")


def is_same_day(a: int, b: int) -> bool:
    return to_local(a).date() == to_local(b).date()


def is_today(ms: int, *, now: int | None = None) -> bool:
    return is_same_day(ms, now_ms() if now is None else now)


def is_tomorrow(ms: int, *, now: int | None = None) -> bool:
    ref = to_local(now_ms() if now is None else now).date()
    return to_local(ms).date() == ref + timedelta(days=1)


def is_overdue(ms: int, *, now: int | None = None) -> bool:
    """Strictly before the start of the current day."""
    return ms < start_of_day(now_ms() if now is None else now)


def is_upcoming(ms: int, *, now: int | None = None) -> bool:
    """Strictly after the end of the current day."""
    return ms > end_of_day(now_ms() if now is None else now)


def _add_months(dt: datetime, months: int) -> datetime:
    # Day-of-month is clamped to the target month's length (Jan 31 -> Feb 28/29).
    total = dt.year * 12 + (dt.month - 1) + months
    year, month = divmod(total, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def next_occurrence(due_ms: int, recurrence: Recurrence) -> int:
    """
    Due date of the next occurrence of a recurring task.

    Calendar-field increments on the local datetime, time of day preserved:
    daily +1 day, weekly +7 days, monthly +1 month, yearly +1 year.
    """
    dt = to_local(due_ms)

    if recurrence == Recurrence.DAILY:
        nxt = dt + timedelta(days=1)
    elif recurrence == Recurrence.WEEKLY:
        nxt = dt + timedelta(days=7)
    elif recurrence == Recurrence.MONTHLY:
        nxt = _add_months(dt, 1)
    elif recurrence == Recurrence.YEARLY:
        nxt = _add_months(dt, 12)
    else:
        raise ValueError(f"unknown recurrence: {recurrence!r}")

    return to_ms(nxt)
