import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .config import get_settings
from .errors import MalformedGraphError
from .handlers import close_handler_registry, create_handler_registry
from .models import (
    CreateWorkflowRequest,
    ExecuteWorkflowRequest,
    ExecuteWorkflowResponse,
    HealthResponse,
    ValidationResponse,
)
from .workflow.executor import ExecutionEngine
from .workflow.generation import parse_workflow_document
from .workflow.report import ExecutionReport
from .workflow.store import ExecutionLogStore, WorkflowRecord, WorkflowStore
from .workflow.validation import validate_graph

load_dotenv()

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="FlowPilot API",
    description="Run visual automation workflows and inspect their execution logs",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ROOT_DIR = Path(__file__).resolve().parents[3]
WORKFLOWS_DIR = settings.workflows_dir or ROOT_DIR / "workflows"

workflow_store = WorkflowStore(WORKFLOWS_DIR)
execution_log_store = ExecutionLogStore(max_entries=settings.max_execution_logs)


@app.get("/api/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


# --- Workflow records ---

@app.get("/api/workflows")
def list_workflows(owner: str = "default"):
    records = workflow_store.list_by_owner(owner)
    return [record.model_dump(mode="json", by_alias=True) for record in records]


@app.post("/api/workflows")
def create_workflow(request: CreateWorkflowRequest):
    try:
        validate_graph(request.graph)
    except MalformedGraphError as e:
        raise HTTPException(status_code=422, detail=e.problems)

    version = 1
    if request.workflow_id:
        existing = workflow_store.load(request.workflow_id, owner=request.owner)
        if existing is None:
            raise HTTPException(
                status_code=404,
                detail=f"Workflow '{request.workflow_id}' not found for owner '{request.owner}'",
            )
        version = existing.version + 1

    fields = dict(
        name=request.name,
        description=request.description,
        owner=request.owner,
        graph=request.graph,
        version=version,
    )
    if request.workflow_id:
        fields["id"] = request.workflow_id
    record = WorkflowRecord(**fields)
    workflow_store.save(record)
    logger.info("Saved workflow %s v%d for %s", record.id, record.version, record.owner)
    return record.model_dump(mode="json", by_alias=True)


@app.post("/api/workflows/validate", response_model=ValidationResponse)
def validate_workflow_document(document: Any = Body(...)):
    """Check an AI-generated graph document before it is saved or executed."""
    try:
        graph = parse_workflow_document(document)
    except MalformedGraphError as e:
        return ValidationResponse(valid=False, problems=e.problems)
    return ValidationResponse(valid=True, graph=graph)


@app.get("/api/workflows/{workflow_id}")
def get_workflow(workflow_id: str, owner: str = "default"):
    record = workflow_store.load(workflow_id, owner=owner)
    if record is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return record.model_dump(mode="json", by_alias=True)


@app.delete("/api/workflows/{workflow_id}")
def delete_workflow(workflow_id: str, owner: str = "default"):
    deleted = workflow_store.delete(workflow_id, owner=owner)
    if not deleted:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return {"status": "deleted", "workflow_id": workflow_id}


@app.post("/api/workflows/{workflow_id}/execute", response_model=ExecuteWorkflowResponse)
async def execute_workflow(workflow_id: str, request: ExecuteWorkflowRequest):
    record = workflow_store.load(workflow_id, owner=request.owner)
    if record is None:
        raise HTTPException(status_code=404, detail="Workflow not found")

    registry = create_handler_registry(settings)
    try:
        engine = ExecutionEngine.from_settings(settings, registry, execution_log_store)
        log = await engine.execute(
            record.graph,
            request.trigger_input,
            record.id,
            user_id=request.user_id,
        )
    finally:
        await close_handler_registry(registry)

    return ExecuteWorkflowResponse.from_log(log)


# --- Execution logs ---

@app.get("/api/executions")
def list_executions(workflow_id: str | None = None):
    return [log.to_dict() for log in execution_log_store.list(workflow_id)]


@app.get("/api/executions/{execution_id}")
def get_execution(execution_id: str):
    log = execution_log_store.get(execution_id)
    if log is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return log.to_dict()


@app.get("/api/executions/{execution_id}/report", response_class=PlainTextResponse)
def get_execution_report(execution_id: str):
    log = execution_log_store.get(execution_id)
    if log is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return ExecutionReport.from_log(log).to_markdown()
