"""Expansion of recurring calendar templates into concrete occurrences.

Every date the rule yields is emitted, up to ``max_occurrences``; windowing is
left to the caller because rule-level ``between()`` queries misbehave around
``UNTIL`` boundaries.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import replace
from datetime import datetime
from typing import List

from dateutil.rrule import rrulestr

from .models import CalendarEvent

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 1000


class RecurrenceError(ValueError):
    """Raised when a template's RRULE cannot be expanded."""


def expand_occurrences(
    template: CalendarEvent,
    group_id: int,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> List[CalendarEvent]:
    if not template.recurrence_rule:
        raise RecurrenceError("event has no recurrence rule")

    try:
        rule = rrulestr(template.recurrence_rule, dtstart=template.start)
    except (ValueError, TypeError) as e:
        raise RecurrenceError(f"cannot parse RRULE {template.recurrence_rule!r}: {e}") from e

    duration = template.end - template.start
    excluded = {_local_date(d, template.start) for d in template.excluded_dates}
    time_of_day = template.start.timetz()

    occurrences: List[CalendarEvent] = []
    for rule_date in itertools.islice(rule, max_occurrences):
        day = rule_date.date()
        if day in excluded:
            continue
        start = datetime.combine(day, time_of_day)
        occurrences.append(
            replace(
                template,
                start=start,
                end=start + duration,
                recurrence_rule=None,
                excluded_dates=(),
                recurrence_group_id=group_id,
            )
        )

    logger.debug(
        "Expanded %r into %d occurrences (group %d)",
        template.summary,
        len(occurrences),
        group_id,
    )
    return occurrences


def _local_date(value: datetime, reference: datetime):
    if value.tzinfo is not None and reference.tzinfo is not None:
        value = value.astimezone(reference.tzinfo)
    return value.date()
