"""Tests for src/agents/base_agent.py: abstract base agent lifecycle."""

import asyncio
from typing import Any

import pytest

from src.agents.base_agent import BaseAgent, _summarize_request
from src.agents.runner import AgentRunner
from src.core.exceptions import AgentInvocationError
from src.core.models import AgentRunResult, ModelClass, TaskSpec


class ConcreteAgent(BaseAgent):
    """Test implementation of BaseAgent."""

    def __init__(self, runner: AgentRunner, should_fail: bool = False):
        super().__init__(name="TestAgent", runner=runner)
        self.should_fail = should_fail
        self.received = None

    async def process(self, request: Any) -> Any:
        self.received = request
        if self.should_fail:
            raise RuntimeError("Intentional test failure")
        return await self.invoke("executor", ModelClass.LOW, "prompt", 1.0)


class SlowRunner(AgentRunner):
    async def invoke(self, agent_type, model_class, prompt, timeout_seconds):
        await asyncio.sleep(10)
        return AgentRunResult.ok(agent_type, "too late")


class TestBaseAgentInit:
    def test_name_and_logger(self, fake_runner_cls):
        agent = ConcreteAgent(fake_runner_cls())
        assert agent.name == "TestAgent"
        assert agent.logger.name == "ohmyblack.agent.testagent"

    def test_initial_metrics(self, fake_runner_cls):
        metrics = ConcreteAgent(fake_runner_cls()).get_metrics()
        assert metrics == {"total_invocations": 0, "total_failures": 0, "last_duration_seconds": 0.0}


class TestBaseAgentRun:
    @pytest.mark.asyncio
    async def test_successful_run(self, fake_runner_cls):
        agent = ConcreteAgent(fake_runner_cls({"executor": ["done"]}))
        result = await agent.run("input")
        assert result.success
        assert result.raw_output == "done"
        assert agent.received == "input"
        assert agent.get_metrics()["total_invocations"] == 1

    @pytest.mark.asyncio
    async def test_process_error_propagates(self, fake_runner_cls):
        agent = ConcreteAgent(fake_runner_cls(), should_fail=True)
        with pytest.raises(RuntimeError, match="Intentional"):
            await agent.run("input")

    def test_metrics_copy_is_isolated(self, fake_runner_cls):
        agent = ConcreteAgent(fake_runner_cls())
        agent.get_metrics()["total_invocations"] = 99
        assert agent.get_metrics()["total_invocations"] == 0


class TestBaseAgentInvoke:
    @pytest.mark.asyncio
    async def test_failed_result_counts_failure(self, fake_runner_cls):
        agent = ConcreteAgent(fake_runner_cls())
        result = await agent.invoke("executor", ModelClass.LOW, "p", 1.0)
        assert not result.success
        assert "no scripted response" in result.error
        assert agent.get_metrics()["total_failures"] == 1

    @pytest.mark.asyncio
    async def test_runner_exception_becomes_failure(self, fake_runner_cls):
        runner = fake_runner_cls({"executor": [AgentInvocationError("executor", "socket closed")]})
        result = await ConcreteAgent(runner).invoke("executor", ModelClass.LOW, "p", 1.0)
        assert not result.success
        assert "socket closed" in result.error

    @pytest.mark.asyncio
    async def test_timeout_guard(self):
        agent = ConcreteAgent(SlowRunner())
        result = await agent.invoke("executor", ModelClass.LOW, "p", 0.05)
        assert not result.success
        assert "timeout after 0.05s" in result.error
        assert result.duration_seconds < 5

    @pytest.mark.asyncio
    async def test_duration_recorded(self, fake_runner_cls):
        agent = ConcreteAgent(fake_runner_cls({"executor": ["ok"]}))
        result = await agent.invoke("executor", ModelClass.LOW, "p", 1.0)
        assert result.duration_seconds >= 0
        assert agent.get_metrics()["last_duration_seconds"] == result.duration_seconds


class TestSummarizeRequest:
    def test_with_task(self):
        class Req:
            task = TaskSpec(task_id="t42", description="d")

        assert _summarize_request(Req()) == "task='t42'"

    def test_plain(self):
        assert _summarize_request("hello") == "str"
