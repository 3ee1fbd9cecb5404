"""Execution engine which runs a workflow graph against registered node handlers."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Literal, Optional

from ..errors import HandlerExecutionError, NoTriggerNodeError
from ..handlers import HandlerRegistry
from .resolver import next_edges, resolve_execution_order
from .schema import (
    WORKFLOW_NODE_ID,
    ExecutionLog,
    ExecutionResult,
    RunStatus,
    WorkflowGraph,
    WorkflowNode,
    utcnow,
)
from .store import ExecutionLogStore

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

TraversalMode = Literal["depth_first", "linear"]
TRAVERSAL_MODES = ("depth_first", "linear")


class CancellationToken:
    """Thread-safe flag checked by the engine between node invocations."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ExecutionEngine:
    """Executes one workflow run at a time per call, sequentially.

    Traversal modes:
      "depth_first": live pre-order walk; each node receives the output of the
                      predecessor that reached it first (default)
      "linear":      the visitation order is computed up front and a single
                      data chain is threaded through it, so branch outputs
                      overwrite one another

    Failures never escape execute(): they are recorded in the returned log.
    """

    def __init__(
        self,
        registry: HandlerRegistry | None = None,
        log_store: ExecutionLogStore | None = None,
        *,
        traversal: TraversalMode = "depth_first",
        branch_routing: bool = False,
        handler_timeout: Optional[float] = None,
    ):
        if traversal not in TRAVERSAL_MODES:
            raise ValueError(f"Unknown traversal mode: {traversal}")
        self.registry = registry if registry is not None else HandlerRegistry()
        self.log_store = log_store if log_store is not None else ExecutionLogStore()
        self.traversal = traversal
        self.branch_routing = branch_routing
        self.handler_timeout = handler_timeout

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: HandlerRegistry,
        log_store: ExecutionLogStore | None = None,
    ) -> ExecutionEngine:
        return cls(
            registry,
            log_store,
            traversal=settings.traversal_mode,
            branch_routing=settings.branch_routing,
            handler_timeout=settings.handler_timeout,
        )

    async def execute(
        self,
        graph: WorkflowGraph,
        trigger_input: Any = None,
        workflow_id: str = "",
        *,
        user_id: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ExecutionLog:
        """Run ``graph`` from its trigger and return the finished log."""
        log = ExecutionLog(
            workflow_id=workflow_id,
            user_id=user_id,
            input=trigger_input,
        )
        self.log_store.put(log)
        logger.info("Execution %s started for workflow %r", log.id, workflow_id)

        try:
            trigger = graph.find_trigger()
            if self.traversal == "linear":
                status = await self._run_linear(graph, trigger, log, cancel_token)
            else:
                status = await self._run_depth_first(graph, trigger, log, cancel_token)
            log.finish(status)
        except NoTriggerNodeError as e:
            self._fail_workflow(log, str(e))
        except Exception as e:
            logger.exception("Execution %s aborted by an engine error", log.id)
            self._fail_workflow(log, f"Unexpected engine error: {e}")

        self.log_store.put(log)
        logger.info(
            "Execution %s finished with status %s after %d node(s) in %.1fms",
            log.id,
            log.status,
            len(log.results),
            log.duration or 0.0,
        )
        return log

    async def _run_depth_first(
        self,
        graph: WorkflowGraph,
        trigger: WorkflowNode,
        log: ExecutionLog,
        cancel_token: CancellationToken | None,
    ) -> RunStatus:
        visited: set[str] = set()
        # Worklist of (node_id, input); the top of the stack runs next
        stack: list[tuple[str, Any]] = [(trigger.id, log.input)]

        while stack:
            node_id, node_input = stack.pop()
            if node_id in visited:
                continue
            node = graph.get_node(node_id)
            if node is None:
                logger.warning("Execution %s: skipping dangling edge target %r", log.id, node_id)
                continue
            if cancel_token is not None and cancel_token.cancelled:
                return "cancelled"

            visited.add(node_id)
            result = await self._run_node(node, node_input)
            log.results.append(result)
            if result.status == "error":
                return "failed"

            edges = next_edges(graph, node, result.output, self.branch_routing)
            for edge in reversed(edges):
                if edge.target not in visited:
                    stack.append((edge.target, result.output))

        return "success"

    async def _run_linear(
        self,
        graph: WorkflowGraph,
        trigger: WorkflowNode,
        log: ExecutionLog,
        cancel_token: CancellationToken | None,
    ) -> RunStatus:
        current = log.input
        for node_id in resolve_execution_order(graph, trigger.id):
            if cancel_token is not None and cancel_token.cancelled:
                return "cancelled"

            node = graph.get_node(node_id)
            result = await self._run_node(node, current)
            log.results.append(result)
            if result.status == "error":
                return "failed"
            current = result.output

        return "success"

    async def _run_node(self, node: WorkflowNode, node_input: Any) -> ExecutionResult:
        """Execute a single node and time it. Handler failures become error results."""
        started_at = utcnow()
        start = time.perf_counter()

        handler = self.registry.lookup(node.handler_type, node.category)
        if handler is None:
            warning = f"No handler for {node.type}:{node.category}; input passed through"
            logger.warning("Node %s: %s", node.id, warning)
            return ExecutionResult(
                node_id=node.id,
                status="success",
                output=node_input,
                warning=warning,
                timestamp=started_at,
                duration=_elapsed_ms(start),
            )

        try:
            output = await self._invoke(handler, node, node_input)
        except Exception as e:
            error = str(e) or e.__class__.__name__
        else:
            return ExecutionResult(
                node_id=node.id,
                status="success",
                output=output,
                timestamp=started_at,
                duration=_elapsed_ms(start),
            )

        logger.error("Node %s (%s:%s) failed: %s", node.id, node.type, node.category, error)
        return ExecutionResult(
            node_id=node.id,
            status="error",
            error=error,
            timestamp=started_at,
            duration=_elapsed_ms(start),
        )

    async def _invoke(self, handler: Any, node: WorkflowNode, node_input: Any) -> Any:
        if self.handler_timeout is None:
            return await self.registry.invoke(handler, node.config, node_input)
        try:
            return await asyncio.wait_for(
                self._invoke_guarded(handler, node, node_input),
                timeout=self.handler_timeout,
            )
        except asyncio.TimeoutError:
            raise HandlerExecutionError(
                f"Handler timed out after {self.handler_timeout}s", "timeout", node.id
            ) from None

    async def _invoke_guarded(self, handler: Any, node: WorkflowNode, node_input: Any) -> Any:
        # A TimeoutError raised by the handler itself must not read as the engine's deadline
        try:
            return await self.registry.invoke(handler, node.config, node_input)
        except asyncio.TimeoutError as e:
            raise HandlerExecutionError(str(e) or e.__class__.__name__, "handler_error", node.id) from e

    def _fail_workflow(self, log: ExecutionLog, message: str) -> None:
        """Record a failure that does not belong to any graph node."""
        log.results.append(
            ExecutionResult(
                node_id=WORKFLOW_NODE_ID,
                status="error",
                error=message,
                duration=0.0,
            )
        )
        log.finish("failed")


def _elapsed_ms(start: float) -> float:
    return max((time.perf_counter() - start) * 1000, 0.0)
