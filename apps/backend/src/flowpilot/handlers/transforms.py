"""Built-in transform handlers."""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from typing import Any

from ..errors import HandlerExecutionError
from .registry import register

FILTER_OPERATORS = ("equals", "contains")


@register("transform", "data_mapper")
def data_mapper(config: dict, payload: Any) -> dict:
    """Copy the input and add one key per mapping.

    A mapping value naming a key of the input copies that key's value;
    anything else is used as a literal.
    """
    source = dict(payload) if isinstance(payload, Mapping) else {}
    mapped = dict(source)
    for key, ref in (config.get("mappings") or {}).items():
        if isinstance(ref, Hashable) and ref in source:
            mapped[key] = source[ref]
        else:
            mapped[key] = ref
    return mapped


@register("transform", "filter")
def filter_(config: dict, payload: Any) -> Any:
    """Pass the input through when it matches, otherwise return None."""
    field = config.get("field")
    if not field:
        raise HandlerExecutionError("filter requires a 'field'", "invalid_config")

    operator = config.get("operator", "equals")
    if operator not in FILTER_OPERATORS:
        raise HandlerExecutionError(
            f"Unsupported filter operator '{operator}' (expected one of {', '.join(FILTER_OPERATORS)})",
            "invalid_config",
        )

    if not isinstance(payload, Mapping) or field not in payload:
        return None

    actual = payload[field]
    expected = config.get("value")
    if operator == "equals":
        matched = actual == expected
    elif isinstance(actual, (set, frozenset, Mapping)):
        # Hash-based membership; unhashable values can never be members
        matched = isinstance(expected, Hashable) and expected in actual
    elif isinstance(actual, (list, tuple)):
        matched = expected in actual
    else:
        matched = str(expected) in str(actual)

    return payload if matched else None
