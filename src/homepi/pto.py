"""Resolve whether the tracked person is on PTO today and describe it.

Pipeline: ``select_pto_events`` -> ``merge_pto_span`` -> ``build_pto_status``.
All functions are pure; "today" is always passed in as an aware midnight.
"""

from __future__ import annotations

import itertools
import logging
import re
from datetime import datetime, time, timedelta
from typing import Iterable, List, Optional

from .business_days import add_business_days, is_next_business_day
from .models import CalendarEvent, StatusResult
from .recurrence import DEFAULT_MAX_OCCURRENCES, RecurrenceError, expand_occurrences

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)
DEFAULT_WORKDAY_START = time(8, 0)
# End times this late are treated as "through the end of the day".
END_OF_DAY = time(23, 59)


def pto_pattern(person: str, summary_pattern: str = "") -> re.Pattern[str]:
    if summary_pattern:
        return re.compile(summary_pattern, re.IGNORECASE)
    return re.compile(rf"{re.escape(person)}.*(pto|vacation)", re.IGNORECASE)


def _in_window(event: CalendarEvent, search_start: datetime) -> bool:
    if event.start >= search_start:
        return True
    return event.end > search_start


def select_pto_events(
    events: Iterable[CalendarEvent],
    search_start: datetime,
    search_end: datetime,
    pattern: re.Pattern[str],
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> List[CalendarEvent]:
    """Return the PTO events overlapping ``[search_start, search_end)``.

    Recurring templates are never returned themselves; their expanded
    occurrences are evaluated in their place.
    """
    group_ids = itertools.count(1)
    selected: List[CalendarEvent] = []

    for event in events:
        if not event.summary:
            continue
        if event.start >= search_end:
            continue
        if not pattern.search(event.summary):
            continue

        if event.recurrence_rule:
            try:
                occurrences = expand_occurrences(event, next(group_ids), max_occurrences)
            except RecurrenceError as e:
                logger.warning("Skipping recurring event %r: %s", event.summary, e)
                continue
            selected.extend(
                o for o in occurrences if o.start < search_end and _in_window(o, search_start)
            )
        elif _in_window(event, search_start):
            selected.append(event)

    return selected


def merge_pto_span(events: Iterable[CalendarEvent], today: datetime) -> List[CalendarEvent]:
    """Return the run of business-day-adjacent PTO events that includes today.

    Only the first run is considered: everything after the first gap is
    dropped, and the run itself is dropped if it starts tomorrow or later.
    """
    unique: List[CalendarEvent] = []
    seen = set()
    for e in events:
        key = (e.start, e.end)
        if key in seen:
            continue
        seen.add(key)
        unique.append(e)

    span = sorted(unique, key=lambda e: e.start)

    for i in range(1, len(span)):
        previous, current = span[i - 1], span[i]
        if not is_next_business_day(previous.start.date(), current.start.date()):
            span = span[:i]
            break

    if span and span[0].start >= today + ONE_DAY:
        logger.debug("Upcoming PTO does not start today, starts %s", span[0].start.isoformat())
        return []

    return span


def _is_midnight(value: datetime) -> bool:
    return value.time() == time(0, 0)


def _format_clock(value: datetime) -> str:
    return value.strftime("%-I:%M %p").lower()


def return_to_work_day(end: datetime) -> datetime:
    # An end at midnight means the last PTO day was the day before.
    if not _is_midnight(end):
        return end
    return add_business_days(end - ONE_DAY, 1)


def build_pto_status(
    span: List[CalendarEvent],
    today: datetime,
    emoji: str,
    workday_start: time = DEFAULT_WORKDAY_START,
) -> StatusResult:
    if not span:
        raise ValueError("cannot build a PTO status from an empty span")

    start = span[0].start
    end = span[-1].end

    if start > datetime.combine(today.date(), workday_start, tzinfo=today.tzinfo):
        # PTO starts partway through the workday; an empty status clears the old one.
        return StatusResult(text="", emoji=emoji, expires_at=None)

    if end.date() == today.date():
        text = "On PTO today"
        expires_at: Optional[datetime] = end
    else:
        return_day = return_to_work_day(end)
        days_away = (return_day.date() - today.date()).days
        day_format = "%A" if days_away < 7 else "%A, %b %-d"
        text = f"On PTO until {return_day.strftime(day_format)}"
        expires_at = return_day

    if not _is_midnight(end) and end.time() < END_OF_DAY:
        text += f" around {_format_clock(end)}"

    return StatusResult(text=text, emoji=emoji, expires_at=expires_at)


def format_phone_message(span: List[CalendarEvent], today: datetime, now: datetime) -> str:
    start_hhmm = ""
    end_hhmm = ""
    if span:
        start = span[0].start
        end = span[-1].end
        start_hhmm = start.strftime("%H%M")
        end_hhmm = "2359" if end > today + ONE_DAY else end.strftime("%H%M")
    return f"today_pto|{now.strftime('%Y%m%d%H%M')}|{start_hhmm}|{end_hhmm}|"
