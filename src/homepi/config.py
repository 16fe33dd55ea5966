from __future__ import annotations
from dataclasses import dataclass
from datetime import time
import os
from pathlib import Path
from typing import Any, Dict
import re
import yaml

@dataclass
class PtoConfig:
    person: str
    summary_pattern: str
    lookahead_days: int
    workday_start: str
    vacation_status: str
    max_occurrences: int

@dataclass
class HttpConfig:
    timeout_seconds: float

@dataclass
class PhoneConfig:
    url_template: str
    ttl_seconds: int

@dataclass
class Secrets:
    calendar_url: str
    slack_token: str
    autoremote_key: str

@dataclass
class AppConfig:
    timezone: str
    log_path: str
    pto: PtoConfig
    http: HttpConfig
    phone: PhoneConfig

AUTOREMOTE_URL = (
    "https://autoremotejoaomgcd.appspot.com/sendmessage"
    "?key=%AUTOREMOTE_KEY%&message=%MESSAGE%&ttl=%TTL%"
)
_EMOJI_CODE = re.compile(r"^:.*:$")

def load_config(path: str) -> AppConfig:
    p = Path(path)
    data: Dict[str, Any] = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    pto = data.get("pto", {})
    http = data.get("http", {})
    phone = data.get("phone", {})

    return AppConfig(
        timezone=data.get("timezone", "America/Chicago"),
        log_path=str(data.get("log_path", "")),
        pto=PtoConfig(
            person=str(pto.get("person", "Brian")),
            summary_pattern=str(pto.get("summary_pattern", "") or ""),
            lookahead_days=int(pto.get("lookahead_days", 21)),
            workday_start=str(pto.get("workday_start", "08:00")),
            vacation_status=str(pto.get("vacation_status", ":palm_tree:|🌴")),
            max_occurrences=int(pto.get("max_occurrences", 1000)),
        ),
        http=HttpConfig(
            timeout_seconds=float(http.get("timeout_seconds", 15)),
        ),
        phone=PhoneConfig(
            url_template=str(phone.get("url_template", AUTOREMOTE_URL)),
            ttl_seconds=int(phone.get("ttl_seconds", 21600)),
        ),
    )

def load_secrets() -> Secrets:
    """Read credentials from the environment (call load_dotenv() first)."""
    return Secrets(
        calendar_url=os.environ.get("FAMILY_CALENDAR_URL", ""),
        slack_token=os.environ.get("SLACK_TOKEN", ""),
        autoremote_key=os.environ.get("AUTOREMOTE_KEY", ""),
    )

def parse_hhmm(s: str) -> time:
    hh, mm = s.split(":")
    return time(hour=int(hh), minute=int(mm))

def vacation_emoji(setting: str) -> str:
    """Pick the ``:emoji:`` half of an ``"<emoji>|<fallback>"`` setting, else the fallback."""
    parts = setting.split("|")
    if _EMOJI_CODE.match(parts[0]) or len(parts) == 1:
        return parts[0]
    return parts[1]
