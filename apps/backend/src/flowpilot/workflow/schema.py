"""Pydantic models defining the workflow graph and execution log structure."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

from ..errors import NoTriggerNodeError

NodeType = Literal["trigger", "action", "transform", "condition", "ai"]
ResultStatus = Literal["success", "error", "skipped"]
RunStatus = Literal["running", "success", "failed", "cancelled"]

# Pseudo node id used for results that do not belong to a graph node
WORKFLOW_NODE_ID = "workflow"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_execution_id() -> str:
    return f"exec_{uuid.uuid4().hex[:12]}"


class _WireModel(BaseModel):
    """snake_case in Python, camelCase on the wire; both accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Position(_WireModel):
    x: float = 0
    y: float = 0


class WorkflowNode(_WireModel):
    """A single step in the workflow graph."""

    id: str
    type: NodeType
    category: str
    name: str = ""
    description: str = ""
    config: dict[str, Any] = {}
    position: Position = Field(default_factory=Position)

    @model_validator(mode="before")
    @classmethod
    def _lift_editor_data(cls, data: Any) -> Any:
        # The visual editor nests type/category/config/label under "data"
        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            return data
        inner = data["data"]
        flat = {key: value for key, value in data.items() if key != "data"}
        for key in ("type", "category", "config", "description"):
            if key in inner:
                flat[key] = inner[key]
        if "label" in inner and "name" not in flat:
            flat["name"] = inner["label"]
        return flat

    @property
    def handler_type(self) -> str:
        """Node type used for handler lookup; ``ai`` nodes run as actions."""
        return "action" if self.type == "ai" else self.type


class WorkflowEdge(_WireModel):
    """A directed edge between two workflow nodes."""

    id: str = ""
    source: str
    target: str
    type: Optional[str] = None
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None


class WorkflowGraph(_WireModel):
    """A complete workflow graph. Edge order is significant for traversal."""

    name: str = ""
    description: str = ""
    nodes: list[WorkflowNode] = []
    edges: list[WorkflowEdge] = []

    def find_trigger(self) -> WorkflowNode:
        """Return the first trigger node in node order."""
        for node in self.nodes:
            if node.type == "trigger":
                return node
        raise NoTriggerNodeError()

    def get_node(self, node_id: str) -> WorkflowNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing_edges(self, node_id: str) -> list[WorkflowEdge]:
        """All edges leaving ``node_id``, in graph edge order."""
        return [edge for edge in self.edges if edge.source == node_id]


class ExecutionResult(_WireModel):
    """Outcome of a single node visited during a run."""

    node_id: str
    status: ResultStatus
    output: Any = None
    error: Optional[str] = None
    warning: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    duration: float = 0.0  # milliseconds


class ExecutionLog(_WireModel):
    """Full record of one workflow run."""

    id: str = Field(default_factory=new_execution_id)
    workflow_id: str
    user_id: Optional[str] = None
    status: RunStatus = "running"
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    input: Any = None
    results: list[ExecutionResult] = []

    @computed_field
    @property
    def duration(self) -> Optional[float]:
        """Wall time of the run in milliseconds, once finished."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000

    @property
    def finished(self) -> bool:
        return self.status != "running"

    def finish(self, status: RunStatus) -> None:
        self.status = status
        self.end_time = utcnow()

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
