from datetime import datetime
from types import SimpleNamespace

import pytest
import requests

from homepi.calendar_feed import (
    CalendarFeedError,
    fetch_calendar_events,
    fetch_calendar_text,
    parse_calendar,
    repair_calendar_text,
)

FEED = "\r\n".join([
    "BEGIN:VCALENDAR",
    "VERSION:2.0",
    "PRODID:-//Family//Calendar//EN",
    "BEGIN:VEVENT",
    "UID:pto-1",
    "DTSTART;VALUE=DATE:20260202",
    "DTEND;VALUE=DATE:20260203",
    "SUMMARY:Brian PTO",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "UID:standup-1",
    "DTSTART:20260105T150000Z",
    "DTEND:20260105T160000Z",
    "SUMMARY:Standup",
    "RRULE:FREQ=WEEKLY;until=20260301T000000",
    "EXDATE:20260112T150000Z",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "UID:untitled-1",
    "DTSTART;VALUE=DATE:20260210",
    "DTEND;VALUE=DATE:20260211",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "UID:broken-1",
    "SUMMARY:No start",
    "END:VEVENT",
    "END:VCALENDAR",
    "",
])


def _response(text: str, status_error: Exception | None = None):
    def raise_for_status():
        if status_error is not None:
            raise status_error

    return SimpleNamespace(text=text, raise_for_status=raise_for_status)


def test_repair_adds_utc_marker_to_bare_until():
    assert repair_calendar_text("RRULE:FREQ=DAILY;until=20260301T000000") == (
        "RRULE:FREQ=DAILY;UNTIL=20260301T000000Z"
    )
    assert repair_calendar_text("RRULE:FREQ=DAILY;UNTIL=20260301T000000;COUNT=2") == (
        "RRULE:FREQ=DAILY;UNTIL=20260301T000000Z;COUNT=2"
    )


def test_repair_leaves_zoned_until_alone():
    text = "RRULE:FREQ=DAILY;UNTIL=20260301T000000Z"

    assert repair_calendar_text(text) == text


def test_parse_converts_events_to_local_time(tz):
    events = parse_calendar(repair_calendar_text(FEED), tz)

    pto, standup, untitled = events
    assert pto.summary == "Brian PTO"
    assert pto.all_day is True
    assert pto.start == datetime(2026, 2, 2, tzinfo=tz)
    assert pto.end == datetime(2026, 2, 3, tzinfo=tz)
    assert pto.recurrence_rule is None

    assert standup.start == datetime(2026, 1, 5, 9, 0, tzinfo=tz)
    assert standup.start.tzinfo == tz
    assert standup.all_day is False
    assert "FREQ=WEEKLY" in standup.recurrence_rule
    assert "UNTIL=20260301T000000Z" in standup.recurrence_rule
    assert standup.excluded_dates == (datetime(2026, 1, 12, 9, 0, tzinfo=tz),)

    assert untitled.summary is None


def test_parse_rejects_garbage(tz):
    with pytest.raises(CalendarFeedError):
        parse_calendar("this is not a calendar", tz)


def test_fetch_returns_calendar_text(monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return _response(FEED)

    monkeypatch.setattr("homepi.calendar_feed.requests.get", fake_get)

    assert fetch_calendar_text("https://example.test/family.ics", timeout=5) == FEED
    assert calls == [("https://example.test/family.ics", 5)]


def test_fetch_rejects_non_calendar_content(monkeypatch):
    monkeypatch.setattr(
        "homepi.calendar_feed.requests.get",
        lambda *_args, **_kwargs: _response("<html>Sign in</html>"),
    )

    with pytest.raises(CalendarFeedError):
        fetch_calendar_text("https://example.test/family.ics")


def test_fetch_wraps_http_errors(monkeypatch):
    monkeypatch.setattr(
        "homepi.calendar_feed.requests.get",
        lambda *_args, **_kwargs: _response("", requests.HTTPError("503 Server Error")),
    )

    with pytest.raises(CalendarFeedError, match="503"):
        fetch_calendar_text("https://example.test/family.ics")


def test_fetch_wraps_connection_errors(monkeypatch):
    def fail(*_args, **_kwargs):
        raise requests.ConnectionError("no route to host")

    monkeypatch.setattr("homepi.calendar_feed.requests.get", fail)

    with pytest.raises(CalendarFeedError):
        fetch_calendar_text("https://example.test/family.ics")


def test_fetch_requires_a_url():
    with pytest.raises(CalendarFeedError):
        fetch_calendar_text("")


def test_fetch_calendar_events_repairs_before_parsing(monkeypatch, tz):
    monkeypatch.setattr(
        "homepi.calendar_feed.requests.get",
        lambda *_args, **_kwargs: _response(FEED),
    )

    events = fetch_calendar_events("https://example.test/family.ics", tz)

    assert [e.summary for e in events] == ["Brian PTO", "Standup", None]
