"""Result aggregation across validators.

Combines the verdicts of every validator run against one builder output
into a single worst-case verdict (REJECTED > NEEDS_REVIEW > APPROVED) and
a flat evidence list.
"""

from __future__ import annotations

from src.core.models import (
    AggregatedVerdict,
    BuilderOutput,
    Evidence,
    EvidenceKind,
    ValidatorVerdict,
    VerdictStatus,
    VerificationEvidence,
)

_STATUS_RANK: dict[VerdictStatus, int] = {
    VerdictStatus.APPROVED: 0,
    VerdictStatus.NEEDS_REVIEW: 1,
    VerdictStatus.REJECTED: 2,
}

_VALIDATOR_EVIDENCE_KINDS: dict[str, str] = {
    "syntax": "syntax_clean",
    "integration": "integration_pass",
}

_BUILDER_EVIDENCE_KINDS: dict[EvidenceKind, str] = {
    EvidenceKind.DIAGNOSTICS: "syntax_clean",
}


def worst_status(statuses: list[VerdictStatus]) -> VerdictStatus:
    if not statuses:
        return VerdictStatus.APPROVED
    return max(statuses, key=_STATUS_RANK.__getitem__)


def verdict_to_evidence(verdict: ValidatorVerdict) -> VerificationEvidence:
    """Convert a verdict into a storable evidence item."""
    passed = verdict.status == VerdictStatus.APPROVED
    return VerificationEvidence(
        kind=_VALIDATOR_EVIDENCE_KINDS.get(verdict.validator_kind, "validator_approval"),
        passed=passed,
        error=None if passed else "; ".join(verdict.issues),
        metadata={
            "validator_kind": verdict.validator_kind,
            "task_id": verdict.task_id,
            "status": verdict.status.value,
            "checks_performed": len(verdict.checks),
            "checks_passed": sum(1 for c in verdict.checks if c.passed),
            "critical_failures": len(verdict.critical_failures()),
            "recommendations": list(verdict.recommendations),
        },
    )


def builder_evidence_to_verification(
    evidence: Evidence,
    attempt_number: int | None = None,
) -> VerificationEvidence:
    metadata: dict[str, object] = {"original_kind": evidence.kind.value}
    if attempt_number is not None:
        metadata["attempt_number"] = attempt_number
    return VerificationEvidence(
        kind=_BUILDER_EVIDENCE_KINDS.get(evidence.kind, "validator_approval"),
        passed=evidence.passed,
        output=evidence.content,
        metadata=metadata,
    )


def aggregate(verdicts: list[ValidatorVerdict]) -> AggregatedVerdict:
    """Combine verdicts with worst-case-wins precedence.

    No verdicts means nothing was asked to fail, so the result is APPROVED.
    """
    critical_issues: list[str] = []
    for verdict in verdicts:
        if verdict.status == VerdictStatus.REJECTED:
            critical_issues.extend(verdict.issues)
        for check in verdict.critical_failures():
            critical_issues.append(f"[{verdict.validator_kind}] {check.name}: {check.evidence}")

    return AggregatedVerdict(
        overall_status=worst_status([v.status for v in verdicts]),
        critical_issues=critical_issues,
        all_evidence=[verdict_to_evidence(v) for v in verdicts],
        verdicts=list(verdicts),
    )


def combine_for_decision(aggregated: AggregatedVerdict, task_id: str) -> ValidatorVerdict:
    """Fold an aggregated result into one verdict the state machine can judge.

    Issues and recommendations come from every validator that did not
    approve; checks come from all validators so critical failures surface
    even under an otherwise approving validator.
    """
    issues: list[str] = []
    recommendations: list[str] = []
    checks = []
    for verdict in aggregated.verdicts:
        checks.extend(verdict.checks)
        if verdict.status == VerdictStatus.APPROVED:
            continue
        for issue in verdict.issues:
            if issue not in issues:
                issues.append(issue)
        for rec in verdict.recommendations:
            if rec not in recommendations:
                recommendations.append(rec)

    kinds = [v.validator_kind for v in aggregated.verdicts]
    return ValidatorVerdict(
        validator_kind="+".join(kinds) if kinds else "aggregate",
        task_id=task_id,
        status=aggregated.overall_status,
        checks=checks,
        issues=issues,
        recommendations=recommendations,
    )


def builder_failure_verdict(output: BuilderOutput, validator_kind: str = "builder") -> ValidatorVerdict:
    """Express a halted builder as a rejection so it flows through the same decision path."""
    return ValidatorVerdict(
        validator_kind=validator_kind,
        task_id=output.task_id,
        status=VerdictStatus.REJECTED,
        issues=[f"Builder phase {output.status.value}: {output.summary}"],
    )
