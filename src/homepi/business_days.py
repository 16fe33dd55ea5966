"""Business-day arithmetic used to decide whether PTO days run together."""

from __future__ import annotations

from datetime import date, timedelta
from typing import TypeVar

# Works for both date and datetime; datetime keeps its time-of-day.
D = TypeVar("D", bound=date)

ONE_DAY = timedelta(days=1)
FRIDAY = 4
MONDAY = 0


def is_business_day(day: date) -> bool:
    return day.weekday() < 5


def add_business_days(day: D, n: int) -> D:
    """Return the date ``n`` business days after ``day``, skipping weekends."""
    if n < 1:
        raise ValueError(f"n must be at least 1, got {n}")

    result = day
    counted = 0
    while counted < n:
        result = result + ONE_DAY
        if is_business_day(result):
            counted += 1
    return result


def is_next_business_day(a: date, b: date) -> bool:
    """True when ``b`` is the day after ``a``, or ``a`` is a Friday and ``b`` the following Monday."""
    gap = (b - a).days
    if gap == 1:
        return True
    return a.weekday() == FRIDAY and b.weekday() == MONDAY and gap == 3
