# tests/test_dates.py

from __future__ import annotations

from datetime import datetime

import pytest

from simple_todo.tasks.dates import (
    day_key,
    end_of_day,
    is_overdue,
    is_today,
    is_tomorrow,
    is_upcoming,
    next_occurrence,
    start_of_day,
    to_local,
)
from simple_todo.tasks.task_models import Recurrence

from .fakes import local_ms

NOW = local_ms(2024, 3, 15, 12, 0)


def test_day_boundaries() -> None:
    assert to_local(start_of_day(NOW)) == datetime(2024, 3, 15, 0, 0)
    assert to_local(end_of_day(NOW)) == datetime(2024, 3, 15, 23, 59, 59, 999000)
    assert day_key(NOW) == "2024-03-15"


def test_day_predicates() -> None:
    assert is_today(local_ms(2024, 3, 15, 0, 0), now=NOW)
    assert is_today(local_ms(2024, 3, 15, 23, 59), now=NOW)
    assert not is_today(local_ms(2024, 3, 16, 0, 0), now=NOW)

    assert is_tomorrow(local_ms(2024, 3, 16, 8, 0), now=NOW)
    assert not is_tomorrow(local_ms(2024, 3, 17, 8, 0), now=NOW)

    assert is_overdue(local_ms(2024, 3, 14, 23, 59), now=NOW)
    # earlier today is not overdue, only earlier days are
    assert not is_overdue(local_ms(2024, 3, 15, 0, 0), now=NOW)

    assert is_upcoming(local_ms(2024, 3, 16, 0, 0), now=NOW)
    assert not is_upcoming(local_ms(2024, 3, 15, 23, 59), now=NOW)


def test_next_occurrence_keeps_time_of_day() -> None:
    due = local_ms(2024, 3, 8, 9, 30)

    assert to_local(next_occurrence(due, Recurrence.DAILY)) == datetime(2024, 3, 9, 9, 30)
    assert to_local(next_occurrence(due, Recurrence.WEEKLY)) == datetime(2024, 3, 15, 9, 30)
    assert to_local(next_occurrence(due, Recurrence.YEARLY)) == datetime(2025, 3, 8, 9, 30)


@pytest.mark.parametrize(
    ("start", "expected"),
    [
        ((2024, 1, 31), datetime(2024, 2, 29, 12, 0)),  # leap year
        ((2023, 1, 31), datetime(2023, 2, 28, 12, 0)),
        ((2024, 3, 31), datetime(2024, 4, 30, 12, 0)),
        ((2024, 12, 15), datetime(2025, 1, 15, 12, 0)),
    ],
)
def test_monthly_clamps_to_month_end(start, expected) -> None:
    assert to_local(next_occurrence(local_ms(*start), Recurrence.MONTHLY)) == expected


def test_yearly_from_leap_day_clamps() -> None:
    due = local_ms(2024, 2, 29)
    assert to_local(next_occurrence(due, Recurrence.YEARLY)) == datetime(2025, 2, 28, 12, 0)


def test_next_occurrence_rejects_unknown_rule() -> None:
    with pytest.raises(ValueError):
        next_occurrence(NOW, "fortnightly")  # type: ignore[arg-type]
