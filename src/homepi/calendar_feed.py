from __future__ import annotations
from datetime import date, datetime, time, timezone
import logging
import re
from typing import Any, List, Optional
from zoneinfo import ZoneInfo

import requests
from icalendar import Calendar, vRecur

from .models import CalendarEvent

logger = logging.getLogger(__name__)

CALENDAR_MARKER = re.compile(r"vcalendar", re.IGNORECASE)
# Some feeds leave the zone off UNTIL on recurring all-day events.
_BARE_UNTIL = re.compile(r"until=(\d{8}T\d{6})(?![0-9zZ])", re.IGNORECASE)


class CalendarFeedError(RuntimeError):
    """Raised when the calendar feed cannot be fetched or is not a calendar."""


def fetch_calendar_text(url: str, timeout: float = 15) -> str:
    if not url:
        raise CalendarFeedError("no calendar URL configured")
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise CalendarFeedError(f"calendar fetch failed: {e}") from e

    text = resp.text
    if not CALENDAR_MARKER.search(text):
        raise CalendarFeedError("calendar feed does not look like iCalendar data")
    return text


def repair_calendar_text(text: str) -> str:
    return _BARE_UNTIL.sub(r"UNTIL=\1Z", text)


def _to_local(value: date | datetime, tz: ZoneInfo) -> datetime:
    # dtstart may be date (all-day) or datetime; floating times are local
    if isinstance(value, datetime):
        return value.astimezone(tz) if value.tzinfo else value.replace(tzinfo=tz)
    return datetime.combine(value, time.min, tzinfo=tz)


def _exdates(component: Any, tz: ZoneInfo) -> tuple[datetime, ...]:
    raw = component.get("EXDATE")
    if raw is None:
        return ()
    groups = raw if isinstance(raw, list) else [raw]
    return tuple(_to_local(d.dt, tz) for group in groups for d in group.dts)


def _rrule_text(component: Any) -> Optional[str]:
    rule = component.get("RRULE")
    if rule is None:
        return None
    if isinstance(rule, list):
        rule = rule[0]
    parts = dict(rule.items())
    if parts.get("UNTIL"):
        # dateutil wants UNTIL in UTC when DTSTART is zone-aware.
        parts["UNTIL"] = [_until_utc(u) for u in parts["UNTIL"]]
    text = vRecur(parts).to_ical()
    return text.decode("utf-8") if isinstance(text, bytes) else str(text)


def _until_utc(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    # A date-only UNTIL includes that whole day.
    return datetime.combine(value, time(23, 59, 59), tzinfo=timezone.utc)


def _to_event(component: Any, tz: ZoneInfo) -> CalendarEvent:
    dtstart = component.decoded("DTSTART")
    if "DTEND" in component:
        dtend = component.decoded("DTEND")
    elif "DURATION" in component:
        dtend = dtstart + component.decoded("DURATION")
    else:
        dtend = dtstart

    summary = component.get("SUMMARY")
    return CalendarEvent(
        start=_to_local(dtstart, tz),
        end=_to_local(dtend, tz),
        summary=str(summary) if summary is not None else None,
        recurrence_rule=_rrule_text(component),
        excluded_dates=_exdates(component, tz),
        all_day=not isinstance(dtstart, datetime),
    )


def parse_calendar(text: str, tz: ZoneInfo) -> List[CalendarEvent]:
    try:
        cal = Calendar.from_ical(text)
    except ValueError as e:
        raise CalendarFeedError(f"calendar feed could not be parsed: {e}") from e

    events: List[CalendarEvent] = []
    for component in cal.walk("VEVENT"):
        try:
            events.append(_to_event(component, tz))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Skipping unparseable event %r: %s", component.get("SUMMARY"), e)
    logger.debug("Parsed %d events from calendar feed", len(events))
    return events


def fetch_calendar_events(url: str, tz: ZoneInfo, timeout: float = 15) -> List[CalendarEvent]:
    text = fetch_calendar_text(url, timeout=timeout)
    logger.debug("Read calendar feed, repairing it")
    return parse_calendar(repair_calendar_text(text), tz)
