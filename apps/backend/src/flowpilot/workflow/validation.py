"""Structural validation for workflow graphs loaded from storage or generation."""

from __future__ import annotations

from collections import Counter

from ..errors import MalformedGraphError
from .schema import WorkflowGraph


def graph_problems(graph: WorkflowGraph) -> list[str]:
    """Return a list of human-readable problems; empty when the graph is valid."""
    problems: list[str] = []

    node_counts = Counter(node.id for node in graph.nodes)
    for node_id, count in node_counts.items():
        if count > 1:
            problems.append(f"duplicate node id '{node_id}' ({count} occurrences)")

    edge_counts = Counter(edge.id for edge in graph.edges if edge.id)
    for edge_id, count in edge_counts.items():
        if count > 1:
            problems.append(f"duplicate edge id '{edge_id}' ({count} occurrences)")

    for edge in graph.edges:
        label = edge.id or f"{edge.source}->{edge.target}"
        if edge.source not in node_counts:
            problems.append(f"edge '{label}' references unknown source '{edge.source}'")
        if edge.target not in node_counts:
            problems.append(f"edge '{label}' references unknown target '{edge.target}'")

    if not any(node.type == "trigger" for node in graph.nodes):
        problems.append("no trigger node")

    return problems


def validate_graph(graph: WorkflowGraph) -> None:
    """Raise MalformedGraphError if the graph is not fit for execution."""
    problems = graph_problems(graph)
    if problems:
        raise MalformedGraphError(problems)
