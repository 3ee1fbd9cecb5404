"""API models for FlowPilot."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .workflow.report import ExecutionReport
from .workflow.schema import ExecutionLog, ExecutionResult, WorkflowGraph


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateWorkflowRequest(_ApiModel):
    """Request to save a workflow graph."""

    name: str = Field(..., description="Human-readable workflow name")
    description: str = Field("", description="What the workflow accomplishes")
    owner: str = Field("default", description="Owner whose workflow list this belongs to")
    graph: WorkflowGraph = Field(..., description="Nodes and edges of the workflow")
    workflow_id: Optional[str] = Field(
        None,
        description="If provided, save a new version of this existing workflow",
    )


class ExecuteWorkflowRequest(_ApiModel):
    """Request to run a saved workflow."""

    trigger_input: Any = Field(
        default_factory=dict,
        description="Run-time input handed to the trigger node",
    )
    owner: str = Field("default", description="Owner of the workflow")
    user_id: Optional[str] = Field(None, description="Caller recorded on the execution log")


class ExecuteWorkflowResponse(_ApiModel):
    """Outcome of a workflow run, shaped for the builder UI."""

    success: bool
    execution_id: str
    status: str
    results: list[ExecutionResult]
    duration: Optional[float] = None
    error: Optional[str] = None

    @classmethod
    def from_log(cls, log: ExecutionLog) -> "ExecuteWorkflowResponse":
        report = ExecutionReport.from_log(log)
        return cls(
            success=log.status == "success",
            execution_id=log.id,
            status=log.status,
            results=log.results,
            duration=log.duration,
            error=report.error,
        )


class ValidationResponse(_ApiModel):
    """Result of validating a generated workflow document."""

    valid: bool
    problems: list[str] = []
    graph: Optional[WorkflowGraph] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str = "FlowPilot Backend"
