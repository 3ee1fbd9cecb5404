"""Built-in condition handlers."""

from __future__ import annotations

from typing import Any

from .registry import register

_FALSE_STRINGS = {"", "false", "0", "no", "off", "none", "null"}


def is_truthy(value: Any) -> bool:
    """Boolean-ish evaluation; common spellings of false in strings count as false."""
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


@register("condition", "if_else")
def if_else(config: dict, payload: Any) -> dict:
    branch = "true" if is_truthy(config.get("condition", False)) else "false"
    return {"branch": branch, "input": payload}
