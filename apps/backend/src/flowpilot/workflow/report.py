"""Execution report model with markdown rendering."""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel

from .schema import ExecutionLog, ExecutionResult


class ExecutionReport(BaseModel):
    """Summary of a finished workflow run."""

    execution_id: str
    workflow_id: str
    status: str
    total_steps: int
    successful: int
    failed: int
    skipped: int
    passed_through: int
    duration: Optional[float] = None
    results: list[ExecutionResult]

    @classmethod
    def from_log(cls, log: ExecutionLog) -> ExecutionReport:
        counts = {"success": 0, "error": 0, "skipped": 0}
        for result in log.results:
            counts[result.status] += 1
        return cls(
            execution_id=log.id,
            workflow_id=log.workflow_id,
            status=log.status,
            total_steps=len(log.results),
            successful=counts["success"],
            failed=counts["error"],
            skipped=counts["skipped"],
            passed_through=sum(1 for r in log.results if r.warning),
            duration=log.duration,
            results=log.results,
        )

    @property
    def error(self) -> str | None:
        """Message of the failing step, if the run failed."""
        for result in self.results:
            if result.status == "error":
                return result.error
        return None

    def to_markdown(self) -> str:
        lines = [
            f"# Execution Report: {self.workflow_id or 'workflow'}",
            "",
            f"**Execution ID:** `{self.execution_id}`",
            f"**Status:** {self.status}",
            f"**Total steps:** {self.total_steps}",
            f"**Successful:** {self.successful}",
            f"**Failed:** {self.failed}",
            f"**Skipped:** {self.skipped}",
            "",
            "## Execution Trace",
            "",
            "| # | Node | Status | Duration | Detail |",
            "|---|------|--------|----------|--------|",
        ]

        for i, result in enumerate(self.results, 1):
            if result.status == "error":
                detail = result.error or ""
            elif result.warning:
                detail = result.warning
            else:
                detail = _summarize(result.output)

            status_icon = {"success": "OK", "error": "FAIL", "skipped": "SKIP"}.get(
                result.status, result.status
            )
            lines.append(
                f"| {i} | `{result.node_id}` | {status_icon} | {result.duration:.1f}ms | {detail} |"
            )

        lines.append("")
        if self.duration is not None:
            lines.append(f"**Duration:** {self.duration / 1000:.2f}s")

        return "\n".join(lines)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


def _summarize(output: Any, limit: int = 80) -> str:
    if output is None:
        return "no output"
    if isinstance(output, dict):
        text = ", ".join(f"{k}={json.dumps(v, default=str)}" for k, v in output.items())
    else:
        text = json.dumps(output, default=str)
    text = text.replace("|", "\\|")
    return text if len(text) <= limit else text[: limit - 3] + "..."
