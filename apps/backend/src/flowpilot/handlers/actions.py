"""Simulated action handlers.

These return the same acknowledgment shapes as the live connectors in
``connectors.py`` without performing any side effect.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from .registry import register

logger = logging.getLogger(__name__)


@register("action", "send_email")
async def send_email(config: dict, payload: Any) -> dict:
    to = config.get("to") or "recipient@example.com"
    subject = config.get("subject") or "Test Email"
    logger.info("Simulated email to %s: %s", to, subject)
    return {
        "sent": True,
        "to": to,
        "subject": subject,
        "message_id": f"msg_{uuid.uuid4().hex[:12]}",
    }


@register("action", "http_request")
async def http_request(config: dict, payload: Any) -> dict:
    method = str(config.get("method") or "GET").upper()
    url = config.get("url")
    logger.info("Simulated %s request to %s", method, url)
    return {"status": 200, "data": {"success": True, "url": url}, "method": method}


@register("action", "slack_message")
async def slack_message(config: dict, payload: Any) -> dict:
    channel = config.get("channel") or "#general"
    message = config.get("message") or "Hello from workflow!"
    logger.info("Simulated Slack post to %s", channel)
    return {"posted": True, "channel": channel, "message": message, "ts": f"{time.time():.6f}"}
