"""
Tests for ordered node execution, node handlers and retry queuing.
"""

import math
import re

import pytest

from constants import JOB_RETRY
from core.broker import RedisBroker
from models.workflow import ExecutionContext, StoredWorkflow, WorkflowNode
from services.execution import JobQueue, WorkflowExecutor
from services.handlers import is_truthy, render_prompt


def make_workflow(*nodes) -> StoredWorkflow:
    return StoredWorkflow(id="wf-1", name="Test", nodes=list(nodes))


@pytest.fixture
def queue(settings) -> JobQueue:
    return JobQueue(RedisBroker(settings), settings)


@pytest.fixture
def executor(fake_ai, queue, settings) -> WorkflowExecutor:
    return WorkflowExecutor(fake_ai, queue, settings)


class TestNodeOrdering:
    def test_sorts_by_vertical_position(self):
        nodes = [
            WorkflowNode(id="c", type="action", position={"x": 0, "y": 300}),
            WorkflowNode(id="a", type="trigger", position={"x": 500, "y": 10}),
            WorkflowNode(id="b", type="logic", position={"x": 0, "y": 120}),
        ]
        ordered = WorkflowExecutor.sort_nodes(nodes)
        assert [n.id for n in ordered] == ["a", "b", "c"]

    def test_missing_position_sorts_as_zero(self):
        nodes = [
            WorkflowNode(id="low", type="action", position={"x": 0, "y": 5}),
            WorkflowNode(id="nopos", type="action"),
            WorkflowNode(id="neg", type="action", position={"x": 0, "y": -5}),
        ]
        ordered = WorkflowExecutor.sort_nodes(nodes)
        assert [n.id for n in ordered] == ["neg", "nopos", "low"]

    def test_null_coordinates_sort_as_zero(self):
        nodes = [
            WorkflowNode(id="low", type="action", position={"x": 0, "y": 5}),
            WorkflowNode(id="null_y", type="action", position={"x": None, "y": None}),
            WorkflowNode(id="neg", type="action", position={"x": 0, "y": -5}),
        ]
        ordered = WorkflowExecutor.sort_nodes(nodes)
        assert [n.id for n in ordered] == ["neg", "null_y", "low"]

    def test_ties_keep_declared_order_and_input_is_untouched(self):
        nodes = [
            WorkflowNode(id="first", type="action", position={"x": 0, "y": 50}),
            WorkflowNode(id="second", type="action", position={"x": 9, "y": 50}),
            WorkflowNode(id="top", type="action", position={"x": 0, "y": 0}),
        ]
        ordered = WorkflowExecutor.sort_nodes(nodes)
        assert [n.id for n in ordered] == ["top", "first", "second"]
        assert [n.id for n in nodes] == ["first", "second", "top"]


class TestHandlers:
    async def test_trigger_returns_utc_millisecond_timestamp(self, executor):
        run = await executor.execute(make_workflow(WorkflowNode(id="t", type="trigger")), {})
        triggered_at = run.output["t"]["triggeredAt"]
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", triggered_at)

    async def test_action_echoes_node_data(self, executor):
        node = WorkflowNode(id="a", type="action", data={"url": "https://x", "n": 1})
        context = await executor.execute(make_workflow(node), {"k": "v"})
        assert context.output["a"] == {"status": "success", "data": {"url": "https://x", "n": 1}}
        assert context.input == {"k": "v"}
        assert context.error is None

    @pytest.mark.parametrize("condition, expected", [
        (True, "true"),
        (1, "true"),
        ("yes", "true"),
        ([], "true"),
        ({}, "true"),
        (False, "false"),
        (0, "false"),
        ("", "false"),
        (None, "false"),
    ])
    async def test_logic_uses_condition_truthiness(self, executor, condition, expected):
        node = WorkflowNode(id="l", type="logic", data={"condition": condition})
        context = await executor.execute(make_workflow(node), {})
        assert context.output["l"] == expected

    async def test_logic_without_condition_is_false(self, executor):
        context = await executor.execute(make_workflow(WorkflowNode(id="l", type="logic")), {})
        assert context.output["l"] == "false"

    def test_nan_is_falsy(self):
        assert is_truthy(math.nan) is False
        assert is_truthy("0") is True

    async def test_web3_returns_placeholder_hash(self, executor):
        context = await executor.execute(make_workflow(WorkflowNode(id="w", type="web3")), {})
        assert context.output["w"] == {"txHash": "0xstub"}

    async def test_ai_substitutes_first_placeholder(self, executor, fake_ai):
        node = WorkflowNode(
            id="ai",
            type="ai",
            data={"prompt": "Summarize {{input}} then {{input}}", "model": "gpt-4o-mini"},
        )
        context = await executor.execute(make_workflow(node), {"text": "hi", "n": 2})

        assert fake_ai.prompts == ['Summarize {"text":"hi","n":2} then {{input}}']
        assert fake_ai.models == ["gpt-4o-mini"]
        assert context.output["ai"] == {"response": "fake reply"}

    async def test_ai_empty_reply_becomes_no_response(self, executor, fake_ai):
        fake_ai.reply = None
        node = WorkflowNode(id="ai", type="ai", data={"prompt": "Hello"})
        context = await executor.execute(make_workflow(node), {})
        assert context.output["ai"] == {"response": "No response"}

    def test_render_prompt_requires_template(self):
        with pytest.raises(ValueError, match="requires a prompt"):
            render_prompt(None, ExecutionContext())


class TestErrorHandling:
    async def test_unknown_type_stops_run_and_queues_retry(self, executor, queue):
        nodes = [
            WorkflowNode(id="t", type="trigger", position={"x": 0, "y": 0}),
            WorkflowNode(id="bad", type="email", position={"x": 0, "y": 100}),
            WorkflowNode(id="after", type="action", position={"x": 0, "y": 200}),
        ]
        run = await executor.run(make_workflow(*nodes), {"a": 1})

        assert run.context.error == "Unknown node type: email"
        assert "t" in run.context.output
        assert "bad" not in run.context.output
        assert "after" not in run.context.output
        assert run.failed_node_id == "bad"
        assert not run.success

        job = await queue.get_job(run.retry_job_id)
        assert job.name == JOB_RETRY
        assert job.attempts == 3
        assert job.backoff.to_dict() == {"type": "exponential", "delay": 1000}
        assert job.data["node"]["id"] == "bad"
        assert job.data["context"]["error"] == "Unknown node type: email"
        assert job.data["context"]["input"] == {"a": 1}

    async def test_handler_exception_is_recorded(self, executor, fake_ai, queue):
        fake_ai.error = RuntimeError("rate limited")
        node = WorkflowNode(id="ai", type="ai", data={"prompt": "x"})
        context = await executor.execute(make_workflow(node), {})

        assert context.error == "rate limited"
        assert context.to_dict() == {"input": {}, "output": {}, "error": "rate limited"}
        assert (await queue.stats())["ready"] == 1

    async def test_queue_failure_keeps_node_error(self, executor, queue):
        async def broken_add(*args, **kwargs):
            raise ConnectionError("queue down")

        queue.add = broken_add
        run = await executor.run(make_workflow(WorkflowNode(id="x", type="nope")), {})
        assert run.context.error == "Unknown node type: nope"
        assert run.retry_job_id is None

    async def test_successful_run_has_no_error_key(self, executor):
        context = await executor.execute(make_workflow(), {"a": 1})
        assert context.to_dict() == {"input": {"a": 1}, "output": {}}
