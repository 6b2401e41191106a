"""Tests for src/verification/prompts.py: builder, validator, retry and escalation prompts."""

import pytest

from src.core.models import (
    BuilderOutput,
    Evidence,
    EvidenceKind,
    FileChange,
    RetryAction,
    RetryStatus,
    SelfValidation,
    Severity,
    ValidationType,
    ValidatorCheck,
    ValidatorVerdict,
    VerdictStatus,
)
from src.verification.prompts import (
    create_builder_task_prompt,
    create_escalation_prompt,
    create_retry_prompt,
    create_validator_prompt,
)
from src.verification.retry_logic import (
    create_retry_state,
    determine_escalation,
    generate_failure_report,
    record_attempt,
)


@pytest.fixture
def builder_output() -> BuilderOutput:
    return BuilderOutput(
        agent_id="executor",
        task_id="t1",
        status="partial",
        summary="Added email check",
        evidence=[Evidence(kind=EvidenceKind.TEST_RESULT, content="x" * 600, passed=False)],
        files_modified=[FileChange(path="signup.py"), FileChange(path="tests/test_signup.py")],
        self_validation=SelfValidation(passed=False, retry_count=1, last_error="1 test failed"),
    )


@pytest.fixture
def rejection() -> ValidatorVerdict:
    return ValidatorVerdict(
        validator_kind="logic",
        task_id="t1",
        status=VerdictStatus.REJECTED,
        checks=[
            ValidatorCheck(name="Password length", passed=False, evidence="7 chars accepted", severity=Severity.MAJOR),
            ValidatorCheck(name="Email", passed=True),
        ],
        issues=["Boundary condition wrong for 8-character passwords"],
        recommendations=["Use >= 8 in the length check"],
    )


class TestBuilderTaskPrompt:
    def test_sections(self, sample_task):
        prompt = create_builder_task_prompt(sample_task, ["syntax", "logic"], max_retries=3)
        assert prompt.startswith("# BUILDER TASK")
        assert "**Task ID:** t1" in prompt
        assert "1. Reject empty emails" in prompt
        assert "## Acceptance Criteria" in prompt
        assert "- **Validators:** syntax, logic" in prompt
        assert "- **Max Retries:** 3" in prompt
        assert "```json" in prompt

    def test_without_validators(self, sample_task):
        prompt = create_builder_task_prompt(sample_task.model_copy(update={"requirements": []}))
        assert "Validators:" not in prompt
        assert "## Requirements" not in prompt


class TestValidatorPrompt:
    def test_header_and_context(self, sample_task, builder_output):
        prompt = create_validator_prompt("logic", builder_output, sample_task)
        assert prompt.startswith("# LOGIC VALIDATION REQUEST")
        assert "- Files Modified: signup.py, tests/test_signup.py" in prompt
        assert "Perform LOGIC validation:" in prompt
        assert '"validatorType": "logic"' in prompt

    def test_evidence_excerpt_truncated(self, sample_task, builder_output):
        prompt = create_validator_prompt("syntax", builder_output, sample_task)
        assert "x" * 500 + "..." in prompt
        assert "x" * 501 not in prompt

    def test_self_validation_block(self, sample_task, builder_output):
        prompt = create_validator_prompt("syntax", builder_output, sample_task)
        assert "### Builder Self-Validation" in prompt
        assert "- Last Error: 1 test failed" in prompt

    def test_unknown_kind(self, sample_task, builder_output):
        prompt = create_validator_prompt("performance", builder_output, sample_task)
        assert "Perform PERFORMANCE validation based on standard practices." in prompt

    def test_no_requirements(self, builder_output, sample_task):
        task = sample_task.model_copy(update={"requirements": []})
        assert "- No specific requirements provided" in create_validator_prompt("syntax", builder_output, task)


class TestRetryPrompt:
    def test_feedback_sections(self, sample_task, builder_output, rejection):
        prompt = create_retry_prompt(sample_task, builder_output, rejection, attempt_number=2)
        assert prompt.startswith("# RETRY REQUEST (Attempt 2)")
        assert "### Failed Checks" in prompt
        assert "- **Password length** (major): 7 chars accepted" in prompt
        assert "Email" not in prompt.split("### Failed Checks")[1].split("###")[0]
        assert "### Issues to Fix\n1. Boundary condition wrong for 8-character passwords" in prompt
        assert "### Recommendations\n1. Use >= 8 in the length check" in prompt
        assert "This is attempt 2." in prompt

    def test_omits_empty_sections(self, sample_task, builder_output):
        verdict = ValidatorVerdict(validator_kind="logic", task_id="t1", status=VerdictStatus.REJECTED)
        prompt = create_retry_prompt(sample_task, builder_output, verdict, attempt_number=1)
        assert "### Failed Checks" not in prompt
        assert "### Issues to Fix" not in prompt
        assert "### Recommendations" not in prompt


class TestEscalationPrompt:
    def test_history_and_context(self, sample_task, builder_output, rejection):
        state = create_retry_state(3)
        state = record_attempt(state, builder_output, rejection, RetryAction.RETRY)
        state = record_attempt(state, builder_output, rejection, RetryAction.ESCALATE)
        escalation = determine_escalation(state, rejection)
        report = generate_failure_report("t1", state, rejection)
        assert report.final_status == RetryStatus.ESCALATED

        prompt = create_escalation_prompt(sample_task, state, escalation, report)
        assert prompt.startswith("# ESCALATION REVIEW REQUEST")
        assert "failed validation after 2 attempts" in prompt
        assert "**Attempt 1:**" in prompt
        assert "**Attempt 2:**" in prompt
        assert "- Recommendations: Use >= 8 in the length check" in prompt
        assert "## Root Cause Analysis" in prompt
        assert "- Boundary condition wrong for 8-character passwords" in prompt

    def test_no_history(self, sample_task):
        state = create_retry_state(3)
        verdict = ValidatorVerdict(validator_kind="logic", task_id="t1", status=VerdictStatus.REJECTED)
        prompt = create_escalation_prompt(
            sample_task.model_copy(update={"validation_type": ValidationType.ARCHITECT}),
            state,
            determine_escalation(state, verdict),
            generate_failure_report("t1", state),
        )
        assert "No clear patterns detected" in prompt
