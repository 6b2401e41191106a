"""Prompt construction for builder, validator, retry and escalation agents.

All prompts are markdown. Retry and escalation prompts carry the concrete
validator feedback (failed checks, issues, recommendations) rather than a
generic "try again".
"""

from __future__ import annotations

import json
from typing import Optional

from src.core.models import BuilderOutput, EscalationDecision, FailureReport, RetryState, TaskSpec, ValidatorVerdict

EVIDENCE_EXCERPT_CHARS = 500

_VALIDATOR_INSTRUCTIONS: dict[str, list[str]] = {
    "syntax": [
        "Perform SYNTAX validation:",
        "1. Check for syntax errors in all modified files",
        "2. Verify the code compiles or parses without errors",
        "3. Check for obvious typos or malformed constructs",
    ],
    "logic": [
        "Perform LOGIC validation:",
        "1. Verify the implementation logic is correct",
        "2. Check edge cases and error handling",
        "3. Ensure the code does what it claims to do",
    ],
    "security": [
        "Perform SECURITY validation:",
        "1. Check for security vulnerabilities",
        "2. Verify input validation and sanitization",
        "3. Check for sensitive data exposure",
        "4. Review authentication and authorization if applicable",
    ],
    "integration": [
        "Perform INTEGRATION validation:",
        "1. Verify the changes integrate with existing code",
        "2. Check for breaking changes to APIs",
        "3. Verify imports and dependencies are correct",
        "4. Check cross-component interactions",
    ],
}


def _numbered(items: list[str]) -> list[str]:
    return [f"{i}. {item}" for i, item in enumerate(items, 1)]


def _excerpt(text: str, limit: int = EVIDENCE_EXCERPT_CHARS) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def create_builder_task_prompt(task: TaskSpec, validators: Optional[list[str]] = None, max_retries: int = 0) -> str:
    parts: list[str] = ["# BUILDER TASK", "", f"**Task ID:** {task.task_id}", ""]
    parts += ["## Task Description", task.description, ""]

    if task.requirements:
        parts += ["## Requirements", *_numbered(task.requirements), ""]
    if task.acceptance_criteria:
        parts += ["## Acceptance Criteria", *_numbered(task.acceptance_criteria), ""]

    parts += ["## Validation", f"- **Validation Level:** {task.validation_type.value}"]
    if validators:
        parts.append(f"- **Validators:** {', '.join(validators)}")
    parts += [f"- **Max Retries:** {max_retries}", ""]

    parts += [
        "## Instructions",
        "",
        "1. Implement the task according to the requirements",
        "2. Ensure all acceptance criteria are met",
        "3. Run self-validation before submitting",
        "4. Provide evidence of successful completion",
        "",
        "**Important:** Your output will be validated. Respond with a ```json block containing",
        "agentId, taskId, status (success|partial|failed|blocked), summary, evidence,",
        "filesModified and selfValidation.",
    ]
    return "\n".join(parts)


def create_validator_prompt(validator_kind: str, output: BuilderOutput, task: TaskSpec) -> str:
    parts: list[str] = [f"# {validator_kind.upper()} VALIDATION REQUEST", ""]
    parts += [
        "## Task Context",
        f"- Task ID: {task.task_id}",
        f"- Description: {task.description}",
        f"- Files Modified: {', '.join(output.modified_paths()) or 'None'}",
        "",
    ]

    parts.append("## Requirements to Verify")
    parts += _numbered(task.requirements) if task.requirements else ["- No specific requirements provided"]
    parts.append("")

    parts += ["## Builder Output", f"- Status: {output.status.value}", f"- Summary: {output.summary}", ""]

    if output.evidence:
        parts.append("### Builder Evidence")
        for i, ev in enumerate(output.evidence, 1):
            parts += [
                f"#### Evidence {i} ({ev.kind.value})",
                f"- Passed: {str(ev.passed).lower()}",
                "```",
                _excerpt(ev.content),
                "```",
            ]
        parts.append("")

    if output.self_validation is not None:
        sv = output.self_validation
        parts += [
            "### Builder Self-Validation",
            f"- Passed: {str(sv.passed).lower()}",
            f"- Retry Count: {sv.retry_count}",
        ]
        if sv.last_error:
            parts.append(f"- Last Error: {sv.last_error}")
        parts.append("")

    parts += ["## Validation Instructions", ""]
    parts += _VALIDATOR_INSTRUCTIONS.get(
        validator_kind,
        [f"Perform {validator_kind.upper()} validation based on standard practices."],
    )

    example = {
        "validatorType": validator_kind,
        "taskId": task.task_id,
        "status": "APPROVED | REJECTED | NEEDS_REVIEW",
        "checks": [{
            "name": "Check name",
            "passed": True,
            "evidence": "Evidence description",
            "severity": "critical | major | minor",
        }],
        "issues": ["List of issues found"],
        "recommendations": ["List of recommendations"],
    }
    parts += [
        "",
        "## Required Output Format",
        "",
        "Respond with a JSON block in the following format:",
        "```json",
        json.dumps(example, indent=2),
        "```",
    ]
    return "\n".join(parts)


def create_retry_prompt(
    task: TaskSpec,
    previous: BuilderOutput,
    feedback: ValidatorVerdict,
    attempt_number: int,
) -> str:
    """Build the prompt for the next builder attempt from the last verdict."""
    parts: list[str] = [f"# RETRY REQUEST (Attempt {attempt_number})", ""]
    parts += ["## Original Task", task.description, ""]
    if task.requirements:
        parts += ["## Requirements", *_numbered(task.requirements), ""]

    parts += [
        "## Previous Attempt Summary",
        f"- Status: {previous.status.value}",
        f"- Summary: {previous.summary}",
        "",
        "## Validation Feedback",
        f"**Validator Status:** {feedback.status.value}",
        "",
    ]

    failed = feedback.failed_checks()
    if failed:
        parts.append("### Failed Checks")
        parts += [f"- **{c.name}** ({c.severity.value}): {c.evidence}" for c in failed]
        parts.append("")
    if feedback.issues:
        parts += ["### Issues to Fix", *_numbered(feedback.issues), ""]
    if feedback.recommendations:
        parts += ["### Recommendations", *_numbered(feedback.recommendations), ""]

    parts += [
        "## Instructions",
        "",
        f"This is attempt {attempt_number}. Focus on fixing the specific issues identified above.",
        "",
        "**Priority Actions:**",
        "1. Address all failed validation checks, starting with critical severity",
        "2. Fix the issues listed above in order",
        "3. Follow the recommendations provided by the validator",
        "4. Run self-validation before submitting",
        "",
        "**Important:** Do not introduce new issues while fixing existing ones.",
    ]
    return "\n".join(parts)


def create_escalation_prompt(
    task: TaskSpec,
    state: RetryState,
    escalation: EscalationDecision,
    report: FailureReport,
) -> str:
    """Hand the full failure context to a higher-tier agent."""
    parts: list[str] = [
        "# ESCALATION REVIEW REQUEST",
        "",
        f"You are reviewing a task that failed validation after {report.total_attempts} attempts.",
        f"Escalation reason: {escalation.reason}",
        "",
        "## Original Task",
        task.description,
        "",
    ]
    if task.requirements:
        parts += ["## Requirements", *_numbered(task.requirements), ""]
    if task.acceptance_criteria:
        parts += ["## Acceptance Criteria", *_numbered(task.acceptance_criteria), ""]

    parts.append("## Failure History")
    for i, attempt in enumerate(state.history, 1):
        builder = attempt.builder_result
        verdict = attempt.validator_result
        parts += [
            f"**Attempt {i}:**",
            f"- Builder Agent: {builder.agent_id if builder else 'unknown'}",
            f"- Status: {builder.status.value if builder else 'unknown'}",
            f"- Issues: {'; '.join(attempt.issues) or 'No validator feedback'}",
            f"- Recommendations: {'; '.join(verdict.recommendations) if verdict and verdict.recommendations else 'None'}",
            "",
        ]

    persistent = escalation.context.persistent_issues
    parts += [
        "## Root Cause Analysis",
        report.root_cause_analysis,
        "",
        "## Persistent Issues",
        *([f"- {p}" for p in persistent] if persistent else ["No clear patterns detected"]),
        "",
        "## Suggested Action",
        escalation.context.suggested_action,
        "",
        "## Your Task",
        "",
        "1. **Analyze** why previous attempts failed despite validator feedback",
        "2. **Identify** the root cause (architectural issue, missing context, incorrect approach)",
        "3. **Fix** the issue directly, or provide specific guidance for the builder",
        "4. **Ensure** all validators would pass after your changes",
        "",
        "## Output Requirements",
        "",
        "- Include all modified files",
        "- Provide evidence (test output, diagnostics) showing the fix works",
        "- Respond with the same ```json builder output block the builder uses",
    ]
    return "\n".join(parts)
