"""Intake of AI-generated workflow documents.

The generation call itself is external; whatever it returns must pass schema
and structural validation here before the engine ever sees it.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from ..errors import MalformedGraphError
from .schema import WorkflowGraph
from .validation import validate_graph

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def extract_json_text(text: str) -> str:
    """Strip a markdown code fence around a JSON document, if present."""
    match = _FENCED_BLOCK.search(text)
    return match.group(1).strip() if match else text.strip()


def parse_workflow_document(document: str | dict[str, Any]) -> WorkflowGraph:
    """Validate a generated graph document and return it as a WorkflowGraph."""
    if isinstance(document, str):
        try:
            document = json.loads(extract_json_text(document))
        except json.JSONDecodeError as e:
            raise MalformedGraphError([f"invalid JSON: {e}"]) from e

    if not isinstance(document, dict):
        raise MalformedGraphError([f"expected a JSON object, got {type(document).__name__}"])

    # Some generators wrap the graph, e.g. {"workflow": {...}}
    if "nodes" not in document and isinstance(document.get("workflow"), dict):
        document = document["workflow"]

    try:
        graph = WorkflowGraph.model_validate(document)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or 'document'}: {err['msg']}"
            for err in e.errors()
        ]
        raise MalformedGraphError(problems) from e

    validate_graph(graph)
    return graph
