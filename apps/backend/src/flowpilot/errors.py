"""Exception types raised by the workflow engine and its handlers."""

from __future__ import annotations


class WorkflowEngineError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, error_type: str = "engine_error"):
        self.error_type = error_type
        super().__init__(message)


class NoTriggerNodeError(WorkflowEngineError):
    """Raised when a graph has no node of type ``trigger``."""

    def __init__(self, message: str = "No trigger node found in workflow"):
        super().__init__(message, "no_trigger_node")


class UnknownHandlerError(WorkflowEngineError):
    """Raised when no handler is registered for a ``(type, category)`` pair."""

    def __init__(self, node_type: str, category: str):
        self.node_type = node_type
        self.category = category
        super().__init__(f"No handler registered for {node_type}:{category}", "unknown_handler")


class HandlerExecutionError(WorkflowEngineError):
    """Raised by a handler when its side effect or computation fails."""

    def __init__(self, message: str, error_type: str = "handler_error", node_id: str | None = None):
        self.node_id = node_id
        super().__init__(message, error_type)


class MalformedGraphError(WorkflowEngineError):
    """Raised when a graph document fails structural validation."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Malformed workflow graph: " + "; ".join(problems), "malformed_graph")
