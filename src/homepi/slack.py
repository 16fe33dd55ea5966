from __future__ import annotations

import logging

import requests

from .models import StatusResult

logger = logging.getLogger(__name__)

SLACK_PROFILE_URL = "https://slack.com/api/users.profile.set"


def status_payload(status: StatusResult) -> dict:
    expiration = int(status.expires_at.timestamp()) if status.expires_at else 0
    return {
        "profile": {
            "status_text": status.text,
            "status_emoji": status.emoji,
            "status_expiration": expiration,
        }
    }


def set_slack_status(token: str, status: StatusResult, timeout: float = 15) -> bool:
    """Set the Slack profile status. Failures are logged, never raised."""
    if not token:
        logger.error("No Slack token configured; not changing Slack status")
        return False

    payload = status_payload(status)
    expiration = payload["profile"]["status_expiration"]
    try:
        resp = requests.post(
            SLACK_PROFILE_URL,
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
        )
        resp.raise_for_status()
        body = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(
            "Error changing Slack status to %s %s (expires %s): %s",
            status.emoji, status.text, expiration, e,
        )
        return False

    if not body.get("ok"):
        logger.error(
            "Error changing Slack status to %s %s (expires %s): %s",
            status.emoji, status.text, expiration, body.get("error", body),
        )
        return False

    logger.info("Changed Slack status to %s %s (expires %s)", status.emoji, status.text, expiration)
    return True
