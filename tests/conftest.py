from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from homepi.models import CalendarEvent

TZ = ZoneInfo("America/Chicago")


@pytest.fixture
def tz():
    return TZ


@pytest.fixture
def make_event():
    """Factory for local-time events: make_event((2026, 2, 2), (2026, 2, 3), "Brian PTO")."""
    def _make(start, end, summary="Brian PTO", **kwargs) -> CalendarEvent:
        return CalendarEvent(
            start=datetime(*start, tzinfo=TZ),
            end=datetime(*end, tzinfo=TZ),
            summary=summary,
            **kwargs,
        )
    return _make
