from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

@dataclass(frozen=True)
class CalendarEvent:
    start: datetime             # timezone-aware, local zone
    end: datetime               # timezone-aware, local zone
    summary: Optional[str] = None
    recurrence_rule: Optional[str] = None       # RRULE text, templates only
    excluded_dates: Tuple[datetime, ...] = ()   # EXDATE values
    recurrence_group_id: Optional[int] = None   # shared by one template's occurrences
    all_day: bool = False

@dataclass(frozen=True)
class StatusResult:
    text: str
    emoji: str
    expires_at: Optional[datetime] = None
