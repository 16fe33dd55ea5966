"""Hourly Raspberry Pi health snapshot, read from OS status files.

Every reader tolerates missing or unreadable files and returns empty values,
so a partial snapshot is still sent.
"""

from __future__ import annotations

import gzip
import json
import logging
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

PROC_PATH = Path("/proc")
DEVICE_MODEL_PATH = PROC_PATH / "device-tree" / "model"
SYSLOG_PATHS = [Path(f"/var/log/syslog.{i}.gz") for i in (4, 3, 2)] + [
    Path("/var/log/syslog.1"),
    Path("/var/log/syslog"),
]
APT_HISTORY_PATHS = [Path(f"/var/log/apt/history.log.{i}.gz") for i in (3, 2, 1)] + [
    Path("/var/log/apt/history.log"),
]

_SYSLOG_STAMP_LEN = 15  # "Apr  8 19:38:09"
_START_DATE = re.compile(r"^Start-Date:\s*(\d{4})-(\d{2})-(\d{2})")
_UPGRADE_CMD = re.compile(r"^Commandline:.*\supgrade\b")


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return ""


def shorten_model(model: str) -> str:
    """Shorten "Raspberry Pi 3 Model B Plus Rev 1.3" to "3B+"."""
    model = "".join(ch for ch in model if " " <= ch <= "~")
    model = re.sub(r"Raspberry Pi\s", "", model)
    model = re.sub(r"\sModel\s", "", model)
    model = re.sub(r"\sPlus", "+", model)
    model = re.sub(r"Rev\s.*$", "", model)
    return model.strip()


def get_hardware_model(path: Path = DEVICE_MODEL_PATH) -> str:
    return shorten_model(_read_text(path))


def parse_meminfo(text: str) -> Dict[str, int]:
    values: Dict[str, int] = {}
    for line in text.splitlines():
        name, _, rest = line.partition(":")
        match = re.search(r"\d+", rest)
        if match:
            values[name.strip()] = int(match.group())
    return values


def _percent(used: float, total: float) -> Optional[int]:
    if not total:
        return None
    return round(used / total * 100)


def get_memory_usage(proc_path: Path = PROC_PATH) -> Dict[str, Optional[int]]:
    info = parse_meminfo(_read_text(proc_path / "meminfo"))
    return {
        "internal": _percent(
            info.get("MemTotal", 0) - info.get("MemAvailable", 0), info.get("MemTotal", 0)
        ),
        "swap": _percent(info.get("SwapTotal", 0) - info.get("SwapFree", 0), info.get("SwapTotal", 0)),
    }


def get_swapping(proc_path: Path = PROC_PATH) -> Dict[str, Optional[int]]:
    counters = {}
    for line in _read_text(proc_path / "vmstat").splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[1].isdigit():
            counters[parts[0]] = int(parts[1])
    return {"in": counters.get("pswpin"), "out": counters.get("pswpout")}


def get_load_average(proc_path: Path = PROC_PATH) -> Dict[str, str]:
    parts = _read_text(proc_path / "loadavg").split()
    if len(parts) < 3:
        return {"one_min": "", "five_min": "", "fifteen_min": ""}
    return {"one_min": parts[0], "five_min": parts[1], "fifteen_min": parts[2]}


def get_disk_usage(path: str = "/") -> Optional[int]:
    try:
        usage = shutil.disk_usage(path)
    except OSError:
        return None
    return _percent(usage.used, usage.total)


def _read_log_lines(paths: Iterable[Path]) -> List[str]:
    lines: List[str] = []
    for path in paths:
        try:
            if path.suffix == ".gz":
                with gzip.open(path, "rt", encoding="utf-8", errors="replace") as f:
                    lines.extend(f.read().splitlines())
            else:
                lines.extend(path.read_text(encoding="utf-8", errors="replace").splitlines())
        except OSError:
            continue
    return lines


def _syslog_time(line: str, now: datetime) -> datetime:
    # Syslog stamps carry no year; one later than now belongs to last year.
    stamp = line[:_SYSLOG_STAMP_LEN].strip()
    when = datetime.strptime(f"{now.year} {stamp}", "%Y %b %d %H:%M:%S")
    if when > now.replace(tzinfo=None):
        when = datetime.strptime(f"{now.year - 1} {stamp}", "%Y %b %d %H:%M:%S")
    return when


def parse_under_voltage(lines: List[str], now: datetime) -> Optional[Dict[str, Any]]:
    """Find the latest under-voltage event in syslog lines.

    Returns ``{"date": datetime, "duration_sec": int | None}``; the duration is
    None while the Pi is still under voltage.
    """
    events = [line for line in lines if "voltage" in line.lower()]
    if not events:
        return None

    last = events[-1]
    if "detected" in last.lower():
        detected_line, normalised_line = last, None
    elif len(events) >= 2:
        detected_line, normalised_line = events[-2], last
    else:
        return None

    try:
        detected = _syslog_time(detected_line, now)
        duration = None
        if normalised_line is not None:
            duration = int((_syslog_time(normalised_line, now) - detected).total_seconds())
    except ValueError as e:
        logger.warning("Could not parse under-voltage syslog line: %s", e)
        return None
    return {"date": detected, "duration_sec": duration}


def parse_latest_upgrade(lines: List[str]) -> str:
    """Return YYYYMMDD of the newest apt history entry that ran an upgrade, or ""."""
    latest = ""
    start_date = ""
    for line in lines:
        match = _START_DATE.match(line)
        if match:
            start_date = "".join(match.groups())
        elif _UPGRADE_CMD.match(line) and start_date:
            latest = max(latest, start_date)
    return latest


def collect_pi_status(
    now: datetime,
    proc_path: Path = PROC_PATH,
    model_path: Path = DEVICE_MODEL_PATH,
    syslog_paths: Iterable[Path] = SYSLOG_PATHS,
    apt_history_paths: Iterable[Path] = APT_HISTORY_PATHS,
    disk_path: str = "/",
) -> Dict[str, Any]:
    memory = get_memory_usage(proc_path)
    swapping = get_swapping(proc_path)
    load = get_load_average(proc_path)
    under_voltage = parse_under_voltage(_read_log_lines(syslog_paths), now)

    return {
        "message_datetime": now.strftime("%Y%m%d%H%M"),
        "pi": {
            "hardware": get_hardware_model(model_path),
            "disk_internal": get_disk_usage(disk_path),
            "memory_internal": memory["internal"],
            "memory_swap": memory["swap"],
            "swapping_in": swapping["in"],
            "swapping_out": swapping["out"],
            "load_one_min": load["one_min"],
            "load_five_min": load["five_min"],
            "load_fifteen_min": load["fifteen_min"],
            "under_voltage": {
                "date": under_voltage["date"].strftime("%Y%m%d%H%M") if under_voltage else None,
                "duration_sec": under_voltage["duration_sec"] if under_voltage else None,
            },
            "latest_upgrade": parse_latest_upgrade(_read_log_lines(apt_history_paths)),
        },
    }


def format_pi_status_message(hostname: str, status: Dict[str, Any]) -> str:
    pi_number = hostname[-1] if hostname else "0"
    return f"pi_{pi_number}_status_new|{json.dumps(status, separators=(',', ':'))}"
