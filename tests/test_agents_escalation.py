"""Tests for src/agents/escalation.py: architect/coordinator hand-off."""

import pytest

from src.agents.escalation import EscalationAgent, EscalationRequest
from src.core.models import (
    AgentRunResult,
    BuilderStatus,
    EscalationDecision,
    EscalationLevel,
    ModelClass,
    RetryAction,
    ValidatorVerdict,
    VerdictStatus,
)
from src.verification.retry_logic import (
    create_retry_state,
    determine_escalation,
    generate_failure_report,
    record_attempt,
)


def _request(sample_task, issues, timeout=5) -> EscalationRequest:
    verdict = ValidatorVerdict(validator_kind="security", task_id="t1", status=VerdictStatus.REJECTED, issues=issues)
    state = record_attempt(create_retry_state(3), None, verdict, RetryAction.ESCALATE)
    return EscalationRequest(
        task=sample_task,
        state=state,
        escalation=determine_escalation(state, verdict),
        report=generate_failure_report("t1", state, verdict),
        timeout_seconds=timeout,
    )


class TestEscalationAgent:
    @pytest.mark.asyncio
    async def test_architect_invoked(self, fake_runner_cls, make_builder_reply, sample_task):
        runner = fake_runner_cls({"architect": [make_builder_reply(agent_id="architect")]})
        request = _request(sample_task, ["Hardcoded API key found in config.ts"])
        assert request.escalation.escalation_level == EscalationLevel.ARCHITECT

        output = await EscalationAgent(runner).run(request)
        assert output.status == BuilderStatus.SUCCESS
        assert output.agent_id == "architect"
        call = runner.calls[0]
        assert call["model_class"] == ModelClass.HIGH
        assert call["prompt"].startswith("# ESCALATION REVIEW REQUEST")

    @pytest.mark.asyncio
    async def test_human_never_invokes(self, fake_runner_cls, sample_task):
        runner = fake_runner_cls()
        request = _request(sample_task, ["Module not found: yaml"])
        assert request.escalation.escalation_level == EscalationLevel.HUMAN

        assert await EscalationAgent(runner).run(request) is None
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_no_escalation_needed(self, fake_runner_cls, sample_task):
        runner = fake_runner_cls()
        request = _request(sample_task, ["Syntax error"])
        request.escalation = EscalationDecision(should_escalate=False, reason="No escalation needed")
        assert await EscalationAgent(runner).run(request) is None
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_failed_invocation(self, fake_runner_cls, sample_task):
        runner = fake_runner_cls({"architect": [AgentRunResult.failure("architect", "exit 1")]})
        request = _request(sample_task, ["Security vulnerability in upload handler"])
        assert await EscalationAgent(runner).run(request) is None
