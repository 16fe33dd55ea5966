from __future__ import annotations

import logging
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 21600


def build_phone_url(url_template: str, key: str, message: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
    return (
        url_template
        .replace("%AUTOREMOTE_KEY%", key)
        .replace("%MESSAGE%", quote(message, safe=""))
        .replace("%TTL%", str(ttl_seconds))
    )


def send_message_to_phone(
    url_template: str,
    key: str,
    message: str,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    timeout: float = 15,
) -> bool:
    """Push a message to the phone over AutoRemote. Failures are logged, never raised."""
    if not key:
        logger.error("No AutoRemote key configured; not sending %r", message)
        return False

    url = build_phone_url(url_template, key, message, ttl_seconds)
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error("Error sending message to phone: %s", e)
        return False

    logger.debug("Sent message to phone: %s", message)
    return True
