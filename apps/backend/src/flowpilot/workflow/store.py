"""Storage for workflow records (versioned JSON files) and execution logs (in memory)."""

from __future__ import annotations

import json
import threading
import uuid
from collections import OrderedDict
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .schema import ExecutionLog, WorkflowGraph


class WorkflowRecord(BaseModel):
    """A saved workflow: metadata plus its graph."""

    id: str = Field(default_factory=lambda: f"wf_{uuid.uuid4().hex[:12]}")
    name: str
    description: str = ""
    owner: str = "default"
    graph: WorkflowGraph
    version: int = 1


class WorkflowStore:
    """Stores workflow records as JSON files, organized by owner."""

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir

    def save(self, record: WorkflowRecord) -> str:
        """Save a workflow record and return its ID."""
        owner_dir = self.base_dir / record.owner
        owner_dir.mkdir(parents=True, exist_ok=True)

        filepath = owner_dir / f"{record.id}-v{record.version}.json"
        filepath.write_text(record.model_dump_json(indent=2, by_alias=True))
        return record.id

    def load(self, workflow_id: str, owner: str = "default") -> WorkflowRecord | None:
        """Load the latest version of a workflow by ID."""
        owner_dir = self.base_dir / owner
        if not owner_dir.exists():
            return None

        matches = sorted(owner_dir.glob(f"{workflow_id}-v*.json"), key=_version_of, reverse=True)
        if not matches:
            return None

        data = json.loads(matches[0].read_text())
        return WorkflowRecord.model_validate(data)

    def list_by_owner(self, owner: str) -> list[WorkflowRecord]:
        """List the latest version of every workflow belonging to an owner."""
        owner_dir = self.base_dir / owner
        if not owner_dir.exists():
            return []

        records = []
        seen_ids: set[str] = set()
        for filepath in sorted(owner_dir.glob("*.json"), key=_version_of, reverse=True):
            record = WorkflowRecord.model_validate(json.loads(filepath.read_text()))
            if record.id not in seen_ids:
                seen_ids.add(record.id)
                records.append(record)
        return sorted(records, key=lambda r: r.id)

    def delete(self, workflow_id: str, owner: str = "default") -> bool:
        """Delete all versions of a workflow. Returns True if any were deleted."""
        owner_dir = self.base_dir / owner
        if not owner_dir.exists():
            return False

        matches = list(owner_dir.glob(f"{workflow_id}-v*.json"))
        for f in matches:
            f.unlink()
        return len(matches) > 0


def _version_of(path: Path) -> int:
    # "<id>-v<version>.json"
    _, _, version = path.stem.rpartition("-v")
    return int(version) if version.isdigit() else 0


class ExecutionLogStore:
    """Process-local store of execution logs keyed by execution ID.

    Safe for concurrent put/get from multiple threads. ``list()`` returns logs
    most-recent-first, i.e. in reverse order of their first ``put()``. A finished
    log whose entry was already evicted from a full store is not re-inserted.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self._logs: OrderedDict[str, ExecutionLog] = OrderedDict()
        self._lock = threading.RLock()

    def put(self, log: ExecutionLog) -> None:
        with self._lock:
            if log.id not in self._logs and log.finished and self._full():
                return
            # Re-putting an existing log keeps its original position
            self._logs[log.id] = log
            if self.max_entries is not None:
                while len(self._logs) > self.max_entries:
                    self._logs.popitem(last=False)

    def _full(self) -> bool:
        return self.max_entries is not None and len(self._logs) >= self.max_entries

    def get(self, execution_id: str) -> ExecutionLog | None:
        with self._lock:
            return self._logs.get(execution_id)

    def list(self, workflow_id: str | None = None) -> list[ExecutionLog]:
        with self._lock:
            logs = list(reversed(self._logs.values()))
        if workflow_id is not None:
            logs = [log for log in logs if log.workflow_id == workflow_id]
        return logs

    def clear(self) -> None:
        with self._lock:
            self._logs.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._logs)
