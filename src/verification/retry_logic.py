"""Retry/escalation state machine for the builder-validator cycle.

Every function here is pure: state goes in, a new value or a decision
comes out. ``RetryState`` is frozen, so attempts already recorded (and
any failure report built from them mid-flight) cannot change later.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from src.core.models import (
    AttemptSummary,
    BuilderOutput,
    EscalationContext,
    EscalationDecision,
    EscalationLevel,
    FailureReport,
    RetryAction,
    RetryAttempt,
    RetryDecision,
    RetryState,
    RetryStatus,
    ValidatorVerdict,
    VerdictStatus,
    VerificationEvidence,
)
from src.llm.response_parser import normalize_issue_text
from src.verification.aggregator import builder_evidence_to_verification, verdict_to_evidence
from src.verification.classifier import DEFAULT_CLASSIFIER, IssueClassifier

logger = logging.getLogger("ohmyblack.verification.retry")

HUMAN_ESCALATION_ATTEMPTS = 5
COORDINATOR_ESCALATION_ATTEMPTS = 3
PERSISTENT_RETRY_ATTEMPTS = 2
FUZZY_MATCH_MIN_LENGTH = 20

_ACTION_STATUS: dict[RetryAction, RetryStatus] = {
    RetryAction.SUCCESS: RetryStatus.SUCCESS,
    RetryAction.ESCALATE: RetryStatus.ESCALATED,
    RetryAction.FAIL: RetryStatus.FAILED,
    RetryAction.RETRY: RetryStatus.IN_PROGRESS,
}

_SECURITY_HINT = re.compile(r"security|vulnerability", re.IGNORECASE)
_DEPENDENCY_HINT = re.compile(r"missing dependency|module not found", re.IGNORECASE)


# ---------------------------------------------------------------------------
# State management
# ---------------------------------------------------------------------------

def create_retry_state(max_attempts: int) -> RetryState:
    return RetryState(max_attempts=max_attempts)


def record_attempt(
    state: RetryState,
    builder_result: Optional[BuilderOutput],
    validator_result: Optional[ValidatorVerdict],
    action: RetryAction,
) -> RetryState:
    """Append one attempt and return the new state.

    ``current_attempt`` always advances by exactly one. A retry recorded at
    or past the ceiling is stored as a failure instead.
    """
    if action == RetryAction.RETRY and state.current_attempt >= state.max_attempts:
        logger.warning(
            "Retry recorded at attempt %d with ceiling %d; recording as failure",
            state.current_attempt, state.max_attempts,
        )
        action = RetryAction.FAIL

    attempt = RetryAttempt(
        attempt_number=state.current_attempt,
        builder_result=builder_result,
        validator_result=validator_result,
        issues=tuple(validator_result.issues) if validator_result else (),
        action=action,
    )
    return state.model_copy(update={
        "current_attempt": state.current_attempt + 1,
        "history": state.history + (attempt,),
        "status": _ACTION_STATUS[action],
    })


# ---------------------------------------------------------------------------
# Retry decision
# ---------------------------------------------------------------------------

def should_retry(
    state: RetryState,
    verdict: ValidatorVerdict,
    classifier: IssueClassifier = DEFAULT_CLASSIFIER,
) -> RetryDecision:
    """Decide what to do with a verdict given the attempts so far."""
    if state.current_attempt >= state.max_attempts:
        return RetryDecision(
            should_retry=False,
            reason=f"Max attempts reached ({state.max_attempts})",
            action=RetryAction.FAIL,
        )

    if verdict.status == VerdictStatus.APPROVED:
        return RetryDecision(should_retry=False, reason="Validation passed", action=RetryAction.SUCCESS)

    if verdict.status == VerdictStatus.NEEDS_REVIEW:
        return RetryDecision(
            should_retry=False,
            reason="Manual review required",
            action=RetryAction.ESCALATE,
        )

    if any(not classifier.is_retryable(issue) for issue in verdict.issues):
        return RetryDecision(
            should_retry=False,
            reason="Non-retryable issue detected",
            action=RetryAction.ESCALATE,
        )

    if verdict.critical_failures():
        return RetryDecision(
            should_retry=False,
            reason="Critical validation failure",
            action=RetryAction.ESCALATE,
        )

    persistent = detect_persistent_issues(state, verdict)
    if persistent and state.current_attempt >= PERSISTENT_RETRY_ATTEMPTS:
        return RetryDecision(
            should_retry=False,
            reason=f"Persistent issues after {state.current_attempt} attempts",
            action=RetryAction.ESCALATE,
        )

    return RetryDecision(should_retry=True, reason="Retryable issues found", action=RetryAction.RETRY)


def are_similar_issues(first: str, second: str) -> bool:
    """Fuzzy issue comparison tolerant of wording drift between attempts."""
    a = normalize_issue_text(first)
    b = normalize_issue_text(second)
    if a == b:
        return True
    if len(a) > FUZZY_MATCH_MIN_LENGTH and len(b) > FUZZY_MATCH_MIN_LENGTH:
        return a in b or b in a
    return False


def detect_persistent_issues(state: RetryState, verdict: ValidatorVerdict) -> list[str]:
    """Return prior-attempt issues that recur in the current verdict."""
    persistent: list[str] = []
    for attempt in state.history:
        for issue in attempt.issues:
            if issue in persistent:
                continue
            if any(are_similar_issues(issue, current) for current in verdict.issues):
                persistent.append(issue)
    return persistent


# ---------------------------------------------------------------------------
# Escalation
# ---------------------------------------------------------------------------

def determine_escalation(
    state: RetryState,
    verdict: ValidatorVerdict,
    classifier: IssueClassifier = DEFAULT_CLASSIFIER,
) -> EscalationDecision:
    """Pick the escalation target. Rules are checked in a fixed priority order."""
    persistent = detect_persistent_issues(state, verdict)

    def decide(level: EscalationLevel, reason: str, suggested_action: str,
               escalate: bool = True) -> EscalationDecision:
        return EscalationDecision(
            should_escalate=escalate,
            escalation_level=level,
            reason=reason,
            context=EscalationContext(
                attempt_history=state.history,
                persistent_issues=persistent,
                suggested_action=suggested_action,
            ),
        )

    if any(classifier.is_security_issue(issue) for issue in verdict.issues):
        return decide(
            EscalationLevel.ARCHITECT,
            "Critical security issue detected",
            "Security architect review required for vulnerability assessment and remediation guidance",
        )

    if state.current_attempt >= HUMAN_ESCALATION_ATTEMPTS:
        return decide(
            EscalationLevel.HUMAN,
            f"Exceeded reasonable retry limit ({state.current_attempt} attempts)",
            "Manual intervention needed; automated retries are not resolving the issues",
        )

    if any(classifier.is_dependency_issue(issue) for issue in verdict.issues):
        return decide(
            EscalationLevel.HUMAN,
            "Missing dependencies or configuration",
            "Install required dependencies or update configuration files manually",
        )

    if persistent and state.current_attempt >= COORDINATOR_ESCALATION_ATTEMPTS:
        return decide(
            EscalationLevel.COORDINATOR,
            f"Persistent issues after {state.current_attempt} attempts",
            "Coordinator should re-evaluate the approach or delegate to a specialized agent",
        )

    if verdict.critical_failures():
        return decide(
            EscalationLevel.ARCHITECT,
            "Critical validation check failed",
            "Architect review needed to address fundamental design or implementation issues",
        )

    return decide(
        EscalationLevel.COORDINATOR,
        "No escalation needed",
        "Continue with retry logic",
        escalate=False,
    )


# ---------------------------------------------------------------------------
# Failure reporting
# ---------------------------------------------------------------------------

def analyze_root_cause(state: RetryState, persistent_issues: list[str]) -> str:
    attempts = len(state.history)
    if persistent_issues:
        return (
            f"The following issues persisted across {attempts} attempts: "
            f"{'; '.join(persistent_issues)}. Repetition like this points to either a "
            "misunderstanding of the requirements or a limit of the builder's ability "
            "to address these specific issues."
        )

    if not state.history:
        return "No attempts were recorded; the builder phase likely failed immediately."

    last = state.history[-1]
    if not last.issues:
        return (
            "The last attempt recorded no specific issues; the failure may be due "
            "to a timeout or system error."
        )
    return (
        f"The last attempt failed with the following issues: {'; '.join(last.issues)}. "
        "The builder was unable to resolve them within the retry limit."
    )


def generate_recommended_action(
    state: RetryState,
    persistent_issues: list[str],
    final_verdict: Optional[ValidatorVerdict] = None,
    classifier: IssueClassifier = DEFAULT_CLASSIFIER,
) -> str:
    if final_verdict is not None:
        escalation = determine_escalation(_prior_to(state, final_verdict), final_verdict, classifier)
        if escalation.should_escalate:
            return escalation.context.suggested_action

    hints = list(persistent_issues)
    if final_verdict is not None:
        hints.extend(final_verdict.issues)

    if any(_DEPENDENCY_HINT.search(issue) for issue in hints):
        return "Install the missing dependencies or update the project's dependency manifest."
    if any(classifier.is_type_issue(issue) for issue in hints):
        return "Review type definitions and make sure annotations are consistent across the codebase."
    if any(_SECURITY_HINT.search(issue) for issue in hints):
        return "Escalate to a security architect for vulnerability assessment and secure coding guidance."

    if len(state.history) >= HUMAN_ESCALATION_ATTEMPTS:
        return "Consider breaking the task into smaller subtasks or seeking human guidance."
    return "Review the issues from the last attempt and consider an alternative implementation approach."


def collect_attempt_evidence(state: RetryState) -> list[VerificationEvidence]:
    """Flatten builder and validator evidence from every recorded attempt."""
    evidence: list[VerificationEvidence] = []
    for attempt in state.history:
        if attempt.builder_result is not None:
            for item in attempt.builder_result.evidence:
                converted = builder_evidence_to_verification(item, attempt.attempt_number)
                evidence.append(converted.model_copy(update={"timestamp": attempt.timestamp}))
        if attempt.validator_result is not None:
            converted = verdict_to_evidence(attempt.validator_result)
            converted.metadata["attempt_number"] = attempt.attempt_number
            evidence.append(converted)
    return evidence


def _prior_to(state: RetryState, verdict: ValidatorVerdict) -> RetryState:
    """Drop the attempt that recorded ``verdict`` so it is not compared with itself."""
    if state.history and state.history[-1].validator_result is verdict:
        return state.model_copy(update={"history": state.history[:-1]})
    return state


def generate_failure_report(
    task_id: str,
    state: RetryState,
    final_verdict: Optional[ValidatorVerdict] = None,
    classifier: IssueClassifier = DEFAULT_CLASSIFIER,
) -> FailureReport:
    """Build the audit artifact for a task that did not succeed.

    Safe to call mid-flight: a non-terminal state is reported as failed.
    """
    persistent = detect_persistent_issues(_prior_to(state, final_verdict), final_verdict) if final_verdict else []
    final_status = (
        RetryStatus.ESCALATED if state.status == RetryStatus.ESCALATED else RetryStatus.FAILED
    )

    return FailureReport(
        task_id=task_id,
        total_attempts=len(state.history),
        final_status=final_status,
        persistent_issues=persistent,
        attempt_summary=[
            AttemptSummary(attempt=a.attempt_number, action=a.action, issues=list(a.issues))
            for a in state.history
        ],
        root_cause_analysis=analyze_root_cause(state, persistent),
        recommended_action=generate_recommended_action(state, persistent, final_verdict, classifier),
        evidence=collect_attempt_evidence(state),
    )
