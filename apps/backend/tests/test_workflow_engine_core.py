import asyncio
import sys
import unittest
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from flowpilot.errors import HandlerExecutionError
from flowpilot.handlers import HandlerRegistry
from flowpilot.workflow.executor import CancellationToken, ExecutionEngine
from flowpilot.workflow.schema import WorkflowGraph
from flowpilot.workflow.store import ExecutionLogStore


def _node(node_id, node_type, category, **config):
    return {"id": node_id, "type": node_type, "category": category, "config": config}


def _edge(source, target, handle=None):
    edge = {"id": f"{source}-{target}", "source": source, "target": target}
    if handle is not None:
        edge["sourceHandle"] = handle
    return edge


def _graph(nodes, edges=()):
    return WorkflowGraph.model_validate({"nodes": list(nodes), "edges": list(edges)})


def _diamond():
    return _graph(
        [
            _node("t", "trigger", "webhook"),
            _node("a", "transform", "data_mapper", mappings={"via": "A"}),
            _node("b", "transform", "data_mapper", mappings={"seen": "via"}),
            _node("c", "transform", "data_mapper", mappings={}),
        ],
        [_edge("t", "a"), _edge("t", "b"), _edge("a", "c"), _edge("b", "c")],
    )


class ExecutionEngineScenarioTests(unittest.TestCase):
    def run_graph(self, graph, trigger_input=None, engine=None, **kwargs):
        engine = engine or ExecutionEngine()
        return asyncio.run(engine.execute(graph, trigger_input, "wf-test", **kwargs))

    def test_trigger_then_send_email(self):
        graph = _graph(
            [
                _node("t", "trigger", "webhook"),
                _node("mail", "action", "send_email", to="a@b.com", subject="Hi"),
            ],
            [_edge("t", "mail")],
        )
        log = self.run_graph(graph, {})

        self.assertEqual(log.status, "success")
        self.assertEqual([r.status for r in log.results], ["success", "success"])
        self.assertTrue(log.results[1].output["sent"])
        self.assertEqual(log.results[1].output["to"], "a@b.com")
        self.assertIsNotNone(log.end_time)

    def test_single_trigger_graph(self):
        log = self.run_graph(_graph([_node("t", "trigger", "webhook")]), {"k": 1})

        self.assertEqual(log.status, "success")
        self.assertEqual(len(log.results), 1)
        self.assertEqual(log.results[0].output, {"triggered": True, "data": {"k": 1}})

    def test_empty_graph_fails_with_missing_trigger(self):
        log = self.run_graph(_graph([]))

        self.assertEqual(log.status, "failed")
        self.assertEqual(len(log.results), 1)
        self.assertEqual(log.results[0].node_id, "workflow")
        self.assertIn("No trigger node found", log.results[0].error)
        self.assertIsNotNone(log.end_time)

    def test_missing_trigger_invokes_no_handler(self):
        calls = []
        registry = HandlerRegistry()
        registry.register("action", "spy", lambda config, data: calls.append(data))
        graph = _graph(
            [_node("a", "action", "spy"), _node("b", "action", "spy")],
            [_edge("a", "b")],
        )

        log = self.run_graph(graph, engine=ExecutionEngine(registry))

        self.assertEqual(log.status, "failed")
        self.assertEqual(calls, [])

    def test_unknown_category_passes_input_through(self):
        graph = _graph(
            [_node("t", "trigger", "webhook"), _node("x", "action", "nonexistent_category")],
            [_edge("t", "x")],
        )
        log = self.run_graph(graph, {"a": 1})

        self.assertEqual(log.status, "success")
        trigger_result, unknown_result = log.results
        self.assertEqual(unknown_result.status, "success")
        self.assertEqual(unknown_result.output, trigger_result.output)
        self.assertIn("nonexistent_category", unknown_result.warning)

    def test_unknown_trigger_category_passes_input_through(self):
        log = self.run_graph(_graph([_node("t", "trigger", "form_submit")]), {"form": "x"})

        self.assertEqual(log.status, "success")
        self.assertEqual(log.results[0].output, {"form": "x"})
        self.assertIsNotNone(log.results[0].warning)

    def test_filter_rejecting_input_is_success_with_null_output(self):
        graph = _graph(
            [
                _node("t", "trigger", "webhook"),
                _node("f", "transform", "filter", field="x", operator="equals", value=5),
            ],
            [_edge("t", "f")],
        )
        log = self.run_graph(graph, {"x": 3})

        self.assertEqual(log.status, "success")
        self.assertEqual(log.results[1].status, "success")
        self.assertIsNone(log.results[1].output)

    def test_diamond_visits_each_node_once_depth_first(self):
        log = self.run_graph(_diamond(), {})

        ids = [r.node_id for r in log.results]
        self.assertEqual(ids, ["t", "a", "c", "b"])
        outputs = {r.node_id: r.output for r in log.results}
        # C only ever sees the branch that reached it first
        self.assertEqual(outputs["c"]["via"], "A")
        # B is fed by the trigger, its real predecessor
        self.assertEqual(outputs["b"]["seen"], "via")

    def test_diamond_linear_mode_threads_single_chain(self):
        log = self.run_graph(_diamond(), {}, engine=ExecutionEngine(traversal="linear"))

        ids = [r.node_id for r in log.results]
        self.assertEqual(ids, ["t", "a", "c", "b"])
        outputs = {r.node_id: r.output for r in log.results}
        # B receives C's output, the previous node in the pre-computed order
        self.assertEqual(outputs["b"]["seen"], "A")

    def test_handler_error_halts_run(self):
        registry = HandlerRegistry()

        @registry.register("action", "explode")
        async def explode(config, data):
            raise HandlerExecutionError("simulated network failure")

        graph = _graph(
            [
                _node("t", "trigger", "webhook"),
                _node("boom", "action", "explode"),
                _node("after", "action", "send_email"),
                _node("sibling", "action", "slack_message"),
            ],
            [_edge("t", "boom"), _edge("boom", "after"), _edge("t", "sibling")],
        )
        log = self.run_graph(graph, {}, engine=ExecutionEngine(registry))

        self.assertEqual(log.status, "failed")
        self.assertEqual([r.node_id for r in log.results], ["t", "boom"])
        self.assertEqual(log.results[-1].status, "error")
        self.assertEqual(log.results[-1].error, "simulated network failure")
        self.assertIsNone(log.results[-1].output)
        self.assertIsNotNone(log.end_time)

    def test_unexpected_handler_exception_is_recorded_not_raised(self):
        registry = HandlerRegistry()
        registry.register("action", "broken", lambda config, data: 1 / 0)
        graph = _graph(
            [_node("t", "trigger", "webhook"), _node("b", "action", "broken")],
            [_edge("t", "b")],
        )

        log = self.run_graph(graph, {}, engine=ExecutionEngine(registry))

        self.assertEqual(log.status, "failed")
        self.assertIn("division by zero", log.results[-1].error)

    def test_trigger_input_is_recorded_as_given(self):
        graph = _graph([_node("t", "trigger", "webhook")])

        log = self.run_graph(graph, None)

        self.assertEqual(log.status, "success")
        self.assertIsNone(log.input)
        self.assertEqual(log.results[0].output, {"triggered": True, "data": None})

    def test_filter_contains_unhashable_value_is_no_match(self):
        graph = _graph(
            [
                _node("t", "trigger", "webhook"),
                _node("m", "transform", "data_mapper", mappings={"x": "data"}),
                _node("f", "transform", "filter", field="x", operator="contains", value=[1]),
            ],
            [_edge("t", "m"), _edge("m", "f")],
        )

        log = self.run_graph(graph, {"k": 1})

        self.assertEqual(log.status, "success")
        self.assertEqual(log.results[-1].status, "success")
        self.assertIsNone(log.results[-1].output)

    def test_durations_fit_within_run_time(self):
        registry = HandlerRegistry()

        @registry.register("action", "slow")
        async def slow(config, data):
            await asyncio.sleep(0.01)
            return data

        graph = _graph(
            [
                _node("t", "trigger", "webhook"),
                _node("s1", "action", "slow"),
                _node("s2", "action", "slow"),
            ],
            [_edge("t", "s1"), _edge("s1", "s2")],
        )
        log = self.run_graph(graph, {}, engine=ExecutionEngine(registry))

        durations = [r.duration for r in log.results]
        self.assertTrue(all(d >= 0 for d in durations))
        self.assertGreaterEqual(durations[1], 5)
        total_ms = (log.end_time - log.start_time).total_seconds() * 1000
        self.assertLessEqual(sum(durations), total_ms + 1)

    def test_cycle_terminates(self):
        graph = _graph(
            [
                _node("t", "trigger", "webhook"),
                _node("a", "transform", "data_mapper"),
                _node("b", "transform", "data_mapper"),
            ],
            [_edge("t", "a"), _edge("a", "b"), _edge("b", "a"), _edge("b", "t")],
        )
        log = self.run_graph(graph, {})

        self.assertEqual(log.status, "success")
        self.assertEqual([r.node_id for r in log.results], ["t", "a", "b"])

    def test_dangling_edge_is_skipped(self):
        graph = _graph(
            [_node("t", "trigger", "webhook"), _node("a", "action", "send_email")],
            [_edge("t", "ghost"), _edge("t", "a")],
        )
        log = self.run_graph(graph, {})

        self.assertEqual(log.status, "success")
        self.assertEqual([r.node_id for r in log.results], ["t", "a"])

    def test_ai_nodes_execute_as_actions(self):
        graph = _graph(
            [_node("t", "trigger", "webhook"), _node("ai", "ai", "send_email", to="x@y.z")],
            [_edge("t", "ai")],
        )
        log = self.run_graph(graph, {})

        self.assertEqual(log.results[1].output["to"], "x@y.z")
        self.assertIsNone(log.results[1].warning)

    def test_long_chain_does_not_hit_recursion_limit(self):
        count = sys.getrecursionlimit() + 100
        nodes = [_node("n0", "trigger", "webhook")]
        nodes += [_node(f"n{i}", "transform", "data_mapper") for i in range(1, count)]
        edges = [_edge(f"n{i}", f"n{i + 1}") for i in range(count - 1)]

        log = self.run_graph(_graph(nodes, edges), {})

        self.assertEqual(log.status, "success")
        self.assertEqual(len(log.results), count)

    def test_log_is_kept_in_store(self):
        store = ExecutionLogStore()
        engine = ExecutionEngine(log_store=store)
        log = self.run_graph(_graph([_node("t", "trigger", "webhook")]), {}, engine=engine)

        self.assertIs(store.get(log.id), log)
        self.assertEqual(log.workflow_id, "wf-test")


class BranchRoutingTests(unittest.TestCase):
    def _graph(self, condition):
        return _graph(
            [
                _node("t", "trigger", "webhook"),
                _node("check", "condition", "if_else", condition=condition),
                _node("yes", "action", "send_email", to="yes@example.com"),
                _node("no", "action", "send_email", to="no@example.com"),
                _node("always", "action", "slack_message"),
            ],
            [
                _edge("t", "check"),
                _edge("check", "yes", handle="true"),
                _edge("check", "no", handle="false"),
                _edge("check", "always"),
            ],
        )

    def test_all_edges_followed_without_branch_routing(self):
        log = asyncio.run(ExecutionEngine().execute(self._graph(False), {}, "wf"))

        self.assertEqual([r.node_id for r in log.results], ["t", "check", "yes", "no", "always"])
        self.assertEqual(log.results[1].output["branch"], "false")

    def test_branch_routing_follows_matching_edge(self):
        engine = ExecutionEngine(branch_routing=True)

        false_log = asyncio.run(engine.execute(self._graph(False), {}, "wf"))
        true_log = asyncio.run(engine.execute(self._graph("yes"), {}, "wf"))

        self.assertEqual([r.node_id for r in false_log.results], ["t", "check", "no", "always"])
        self.assertEqual([r.node_id for r in true_log.results], ["t", "check", "yes", "always"])


class TimeoutAndCancellationTests(unittest.TestCase):
    def test_handler_timeout_fails_run(self):
        registry = HandlerRegistry()

        @registry.register("action", "hang")
        async def hang(config, data):
            await asyncio.sleep(5)

        graph = _graph(
            [_node("t", "trigger", "webhook"), _node("h", "action", "hang")],
            [_edge("t", "h")],
        )
        engine = ExecutionEngine(registry, handler_timeout=0.05)
        log = asyncio.run(engine.execute(graph, {}, "wf"))

        self.assertEqual(log.status, "failed")
        self.assertEqual(log.results[-1].node_id, "h")
        self.assertIn("timed out", log.results[-1].error)

    def test_handler_raised_timeout_keeps_its_message(self):
        registry = HandlerRegistry()

        @registry.register("action", "flaky")
        async def flaky(config, data):
            raise asyncio.TimeoutError("upstream socket timed out")

        graph = _graph(
            [_node("t", "trigger", "webhook"), _node("f", "action", "flaky")],
            [_edge("t", "f")],
        )

        for engine in (ExecutionEngine(registry), ExecutionEngine(registry, handler_timeout=5)):
            log = asyncio.run(engine.execute(graph, {}, "wf"))
            self.assertEqual(log.status, "failed")
            self.assertEqual(log.results[-1].error, "upstream socket timed out")

    def test_cancellation_checked_between_nodes(self):
        token = CancellationToken()
        registry = HandlerRegistry()

        @registry.register("action", "cancel_run")
        def cancel_run(config, data):
            token.cancel()
            return data

        graph = _graph(
            [
                _node("t", "trigger", "webhook"),
                _node("c", "action", "cancel_run"),
                _node("never", "action", "send_email"),
            ],
            [_edge("t", "c"), _edge("c", "never")],
        )
        log = asyncio.run(ExecutionEngine(registry).execute(graph, {}, "wf", cancel_token=token))

        self.assertEqual(log.status, "cancelled")
        self.assertEqual([r.node_id for r in log.results], ["t", "c"])
        self.assertIsNotNone(log.end_time)

    def test_concurrent_runs_are_independent(self):
        registry = HandlerRegistry()

        @registry.register("action", "sleepy")
        async def sleepy(config, data):
            await asyncio.sleep(0.01)
            return {"tag": config["tag"]}

        def graph(tag):
            return _graph(
                [_node("t", "trigger", "webhook"), _node("s", "action", "sleepy", tag=tag)],
                [_edge("t", "s")],
            )

        engine = ExecutionEngine(registry)

        async def run_both():
            return await asyncio.gather(
                engine.execute(graph("one"), {}, "wf-1"),
                engine.execute(graph("two"), {}, "wf-2"),
            )

        first, second = asyncio.run(run_both())

        self.assertNotEqual(first.id, second.id)
        self.assertEqual(first.results[-1].output, {"tag": "one"})
        self.assertEqual(second.results[-1].output, {"tag": "two"})
        self.assertEqual(len(engine.log_store), 2)


if __name__ == "__main__":
    unittest.main()
