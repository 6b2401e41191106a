"""Tests for src/agents/validator.py: validator agent and concurrent panel."""

import asyncio

import pytest

from src.agents.builder import parse_builder_output
from src.agents.runner import AgentRunner
from src.agents.validator import (
    ValidationRequest,
    ValidatorAgent,
    ValidatorPanel,
    execution_failure_verdict,
)
from src.core.models import AgentRunResult, ModelClass, Severity, VerdictStatus


@pytest.fixture
def builder_output(make_builder_reply):
    return parse_builder_output(make_builder_reply(), "executor", "t1")


class TestExecutionFailureVerdict:
    def test_shape(self):
        verdict = execution_failure_verdict("logic", "t1", "timeout after 5s")
        assert verdict.status == VerdictStatus.REJECTED
        assert verdict.issues == ["Validator execution failed: timeout after 5s"]
        assert verdict.checks[0].severity == Severity.MAJOR
        assert verdict.critical_failures() == []


class TestValidatorAgent:
    @pytest.mark.asyncio
    async def test_routes_to_configured_agent(self, fake_runner_cls, make_verdict_reply, sample_task, builder_output):
        runner = fake_runner_cls({"validator-security": [make_verdict_reply("security")]})
        verdict = await ValidatorAgent(runner).run(
            ValidationRequest("security", builder_output, sample_task, 5),
        )
        assert verdict.status == VerdictStatus.APPROVED
        call = runner.calls[0]
        assert call["model_class"] == ModelClass.HIGH
        assert call["prompt"].startswith("# SECURITY VALIDATION REQUEST")

    @pytest.mark.asyncio
    async def test_unparseable_output(self, fake_runner_cls, sample_task, builder_output):
        runner = fake_runner_cls({"validator-logic": ["I think it is fine."]})
        verdict = await ValidatorAgent(runner).run(ValidationRequest("logic", builder_output, sample_task, 5))
        assert verdict.status == VerdictStatus.NEEDS_REVIEW

    @pytest.mark.asyncio
    async def test_invocation_failure(self, fake_runner_cls, sample_task, builder_output):
        runner = fake_runner_cls({"validator-logic": [AgentRunResult.failure("validator-logic", "timeout after 5s")]})
        verdict = await ValidatorAgent(runner).run(ValidationRequest("logic", builder_output, sample_task, 5))
        assert verdict.status == VerdictStatus.REJECTED
        assert "timeout" in verdict.issues[0]


class _GatedRunner(AgentRunner):
    """Syntax answers only after logic has started, proving the panel runs validators concurrently."""

    def __init__(self, reply):
        self.reply = reply
        self.logic_started = asyncio.Event()

    async def invoke(self, agent_type, model_class, prompt, timeout_seconds):
        if agent_type == "validator-logic":
            self.logic_started.set()
            return AgentRunResult.ok(agent_type, self.reply("logic"))
        await asyncio.wait_for(self.logic_started.wait(), timeout=2)
        return AgentRunResult.ok(agent_type, self.reply("syntax"))


class TestValidatorPanel:
    @pytest.mark.asyncio
    async def test_one_verdict_per_kind_in_order(self, fake_runner_cls, make_verdict_reply, sample_task, builder_output):
        runner = fake_runner_cls({
            "validator-syntax": [make_verdict_reply("syntax")],
            "validator-logic": [make_verdict_reply("logic", "REJECTED", issues=["Logic error"])],
        })
        panel = ValidatorPanel(ValidatorAgent(runner))
        verdicts = await panel.validate(["syntax", "logic"], builder_output, sample_task, 5)
        assert [v.validator_kind for v in verdicts] == ["syntax", "logic"]
        assert [v.status for v in verdicts] == [VerdictStatus.APPROVED, VerdictStatus.REJECTED]

    @pytest.mark.asyncio
    async def test_runs_concurrently(self, make_verdict_reply, sample_task, builder_output):
        panel = ValidatorPanel(ValidatorAgent(_GatedRunner(make_verdict_reply)))
        verdicts = await panel.validate(["syntax", "logic"], builder_output, sample_task, 5)
        assert all(v.status == VerdictStatus.APPROVED for v in verdicts)

    @pytest.mark.asyncio
    async def test_crash_does_not_cancel_siblings(self, fake_runner_cls, make_verdict_reply, sample_task, builder_output):
        runner = fake_runner_cls({
            "validator-syntax": [RuntimeError("validator crashed")],
            "validator-logic": [make_verdict_reply("logic")],
        })
        verdicts = await ValidatorPanel(ValidatorAgent(runner)).validate(
            ["syntax", "logic"], builder_output, sample_task, 5,
        )
        assert verdicts[0].status == VerdictStatus.REJECTED
        assert "RuntimeError: validator crashed" in verdicts[0].issues[0]
        assert verdicts[1].status == VerdictStatus.APPROVED

    @pytest.mark.asyncio
    async def test_empty_kinds(self, fake_runner_cls, sample_task, builder_output):
        verdicts = await ValidatorPanel(ValidatorAgent(fake_runner_cls())).validate([], builder_output, sample_task, 5)
        assert verdicts == []
