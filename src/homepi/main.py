from __future__ import annotations

import argparse
import logging
import socket
import sys
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from .calendar_feed import CalendarFeedError, fetch_calendar_events
from .config import AppConfig, PtoConfig, Secrets, load_config, load_secrets, parse_hhmm, vacation_emoji
from .models import CalendarEvent, StatusResult
from .phone import send_message_to_phone
from .pi_status import collect_pi_status, format_pi_status_message
from .pto import build_pto_status, format_phone_message, merge_pto_span, pto_pattern, select_pto_events
from .slack import set_slack_status

logger = logging.getLogger(__name__)

CONFIG_PATH_DEFAULT = "/opt/homepi/config.yaml"
LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "verbose": logging.DEBUG,
}
LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-7s: %(message)s"


def configure_logging(level: str = "error", log_path: str = "") -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_path:
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    logging.basicConfig(
        level=LOG_LEVELS.get(level.lower(), logging.ERROR),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def resolve_pto(
    events: List[CalendarEvent],
    today: datetime,
    pto: PtoConfig,
) -> Tuple[List[CalendarEvent], Optional[StatusResult]]:
    """Return today's PTO span and, when it is non-empty, the status describing it."""
    candidates = select_pto_events(
        events,
        search_start=today,
        search_end=today + timedelta(days=pto.lookahead_days),
        pattern=pto_pattern(pto.person, pto.summary_pattern),
        max_occurrences=pto.max_occurrences,
    )
    span = merge_pto_span(candidates, today)
    if not span:
        return span, None

    status = build_pto_status(
        span,
        today,
        vacation_emoji(pto.vacation_status),
        workday_start=parse_hhmm(pto.workday_start),
    )
    return span, status


def run_pto(cfg: AppConfig, secrets: Secrets, now: Optional[datetime] = None) -> None:
    tz = ZoneInfo(cfg.timezone)
    now = now or datetime.now(tz=tz)
    today = _start_of_day(now)
    timeout = cfg.http.timeout_seconds

    try:
        events = fetch_calendar_events(secrets.calendar_url, tz, timeout=timeout)
    except CalendarFeedError as e:
        logger.error("Error reading family calendar: %s", e)
        return

    span, status = resolve_pto(events, today, cfg.pto)
    if status is not None:
        logger.info(
            "PTO today from %s - %s, changing Slack status to %r (expires %s)",
            span[0].start.isoformat(), span[-1].end.isoformat(), status.text, status.expires_at,
        )
        # An empty status clears whatever was set before.
        set_slack_status(secrets.slack_token, status, timeout=timeout)
    else:
        logger.info("No PTO today, not changing Slack status")

    send_message_to_phone(
        cfg.phone.url_template,
        secrets.autoremote_key,
        format_phone_message(span, today, now),
        ttl_seconds=cfg.phone.ttl_seconds,
        timeout=timeout,
    )


def run_pi_status(cfg: AppConfig, secrets: Secrets, now: Optional[datetime] = None) -> None:
    now = now or datetime.now(tz=ZoneInfo(cfg.timezone))
    status = collect_pi_status(now)
    pi = status["pi"]
    logger.info(
        "PI: Hardware: %s; Disk: %s%%; Memory: i=%s%%, s=%s%%; Load: %s/%s/%s; Upgraded: %s",
        pi["hardware"], pi["disk_internal"], pi["memory_internal"], pi["memory_swap"],
        pi["load_one_min"], pi["load_five_min"], pi["load_fifteen_min"], pi["latest_upgrade"],
    )
    send_message_to_phone(
        cfg.phone.url_template,
        secrets.autoremote_key,
        format_pi_status_message(socket.gethostname(), status),
        ttl_seconds=cfg.phone.ttl_seconds,
        timeout=cfg.http.timeout_seconds,
    )


JOBS = {
    "pto": run_pto,
    "pi-status": run_pi_status,
}


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Home Pi automation jobs")
    ap.add_argument("--config", default=CONFIG_PATH_DEFAULT)
    ap.add_argument("--log-level", default="error", choices=sorted(LOG_LEVELS))
    ap.add_argument("job", choices=sorted(JOBS))
    args = ap.parse_args(argv)

    load_dotenv()
    cfg = load_config(args.config)
    configure_logging(args.log_level, cfg.log_path)

    try:
        JOBS[args.job](cfg, load_secrets())
    except Exception:
        logger.exception("Unexpected error running %s job", args.job)
        sys.exit(1)


if __name__ == "__main__":
    main()
