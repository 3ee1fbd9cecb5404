"""Built-in trigger handlers. A trigger turns the run-time input into the first output."""

from __future__ import annotations

from typing import Any

from ..workflow.schema import utcnow
from .registry import register


@register("trigger", "webhook")
async def webhook(config: dict, payload: Any) -> dict:
    return {"triggered": True, "data": payload}


@register("trigger", "schedule")
async def schedule(config: dict, payload: Any) -> dict:
    return {"triggered": True, "timestamp": utcnow().isoformat()}


@register("trigger", "email_received")
async def email_received(config: dict, payload: Any) -> dict:
    email = payload.get("email") if isinstance(payload, dict) else None
    return {"triggered": True, "email": email or "test@example.com"}
