"""Traversal order for workflow graphs.

Both traversal shapes walk the graph depth-first in pre-order starting at the
trigger, visiting children in edge order. A node reached a second time is not
visited again, so converging paths are dropped rather than merged and cycles
terminate. The walk uses an explicit stack instead of recursion.
"""

from __future__ import annotations

import logging
from typing import Any

from .schema import WorkflowEdge, WorkflowGraph, WorkflowNode

logger = logging.getLogger(__name__)


def resolve_execution_order(graph: WorkflowGraph, start_id: str) -> list[str]:
    """Return the full visitation order of node IDs reachable from ``start_id``."""
    order: list[str] = []
    visited: set[str] = set()
    stack: list[str] = [start_id]

    while stack:
        node_id = stack.pop()
        if node_id in visited:
            continue
        if graph.get_node(node_id) is None:
            logger.warning("Skipping dangling edge target %r", node_id)
            continue

        visited.add(node_id)
        order.append(node_id)

        # Reversed so the first edge is popped first
        for edge in reversed(graph.outgoing_edges(node_id)):
            if edge.target not in visited:
                stack.append(edge.target)

    return order


def next_edges(
    graph: WorkflowGraph,
    node: WorkflowNode,
    output: Any,
    branch_routing: bool = False,
) -> list[WorkflowEdge]:
    """Edges to follow after ``node`` produced ``output``.

    With ``branch_routing`` off every outgoing edge is followed, which is how
    saved graphs have always executed. With it on, a condition node that
    reports a ``branch`` only follows edges whose ``source_handle`` is unset or
    matches that branch.
    """
    edges = graph.outgoing_edges(node.id)
    if not branch_routing or node.type != "condition":
        return edges
    if not isinstance(output, dict) or "branch" not in output:
        return edges

    branch = str(output["branch"])
    return [edge for edge in edges if edge.source_handle is None or edge.source_handle == branch]
