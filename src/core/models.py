"""All Pydantic data models for ohmyblack.

Defines the data contracts exchanged between the builder, the validators,
the retry/escalation state machine and the cycle orchestrator. Models that
travel over the agent boundary accept the camelCase keys agents emit.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class BuilderStatus(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    BLOCKED = "blocked"


class EvidenceKind(str, enum.Enum):
    COMMAND_OUTPUT = "command_output"
    TEST_RESULT = "test_result"
    DIAGNOSTICS = "diagnostics"
    MANUAL_CHECK = "manual_check"


class ChangeType(str, enum.Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class VerdictStatus(str, enum.Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_REVIEW = "NEEDS_REVIEW"


class Severity(str, enum.Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class RetryAction(str, enum.Enum):
    RETRY = "retry"
    ESCALATE = "escalate"
    SUCCESS = "success"
    FAIL = "fail"


class RetryStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"
    ESCALATED = "escalated"


class EscalationLevel(str, enum.Enum):
    COORDINATOR = "coordinator"
    ARCHITECT = "architect"
    HUMAN = "human"


class ModelClass(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ValidationType(str, enum.Enum):
    SELF_ONLY = "self-only"
    VALIDATOR = "validator"
    ARCHITECT = "architect"


class TaskComplexity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


TERMINAL_RETRY_STATUSES = frozenset(
    {RetryStatus.SUCCESS, RetryStatus.FAILED, RetryStatus.ESCALATED}
)


class _WireModel(BaseModel):
    """Immutable model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Builder output
# ---------------------------------------------------------------------------

class Evidence(_WireModel):
    kind: EvidenceKind = Field(alias="type")
    content: str
    passed: bool


class FileChange(_WireModel):
    path: str
    change_type: ChangeType = ChangeType.MODIFIED
    diagnostics_clean: bool = False


class SelfValidation(_WireModel):
    passed: bool
    retry_count: int = Field(default=0, ge=0)
    last_error: Optional[str] = None


class BuilderOutput(_WireModel):
    """Result of one builder invocation for one task."""
    agent_id: str
    task_id: str
    status: BuilderStatus
    summary: str
    evidence: list[Evidence]
    files_modified: Optional[list[FileChange]] = None
    self_validation: Optional[SelfValidation] = None
    next_steps: Optional[list[str]] = None
    learnings: Optional[list[str]] = None
    timestamp: datetime = Field(default_factory=_now)

    @property
    def halted(self) -> bool:
        """Failed or blocked builders short-circuit validation."""
        return self.status in (BuilderStatus.FAILED, BuilderStatus.BLOCKED)

    def modified_paths(self) -> list[str]:
        return [change.path for change in self.files_modified or []]


# ---------------------------------------------------------------------------
# Validator verdicts
# ---------------------------------------------------------------------------

class ValidatorCheck(_WireModel):
    name: str
    passed: bool
    evidence: str = ""
    severity: Severity = Severity.MAJOR


class ValidatorVerdict(_WireModel):
    """One validator's structured opinion on a builder output."""
    validator_kind: str = Field(alias="validatorType")
    task_id: str
    status: VerdictStatus
    checks: list[ValidatorCheck] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    def failed_checks(self) -> list[ValidatorCheck]:
        return [c for c in self.checks if not c.passed]

    def critical_failures(self) -> list[ValidatorCheck]:
        return [c for c in self.checks if not c.passed and c.severity == Severity.CRITICAL]


class VerificationEvidence(BaseModel):
    """Unified evidence item collected across builders and validators."""
    kind: str
    passed: bool
    output: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class AggregatedVerdict(BaseModel):
    """Worst-case combination of every validator run on one attempt."""
    overall_status: VerdictStatus = VerdictStatus.APPROVED
    critical_issues: list[str] = Field(default_factory=list)
    all_evidence: list[VerificationEvidence] = Field(default_factory=list)
    verdicts: list[ValidatorVerdict] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Retry / escalation state machine
# ---------------------------------------------------------------------------

class RetryAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    attempt_number: int
    timestamp: datetime = Field(default_factory=_now)
    builder_result: Optional[BuilderOutput] = None
    validator_result: Optional[ValidatorVerdict] = None
    issues: tuple[str, ...] = ()
    action: RetryAction


class RetryState(BaseModel):
    """Copy-on-write state of one task's retry cycle."""
    model_config = ConfigDict(frozen=True)

    current_attempt: int = Field(default=0, ge=0)
    max_attempts: int = Field(ge=0)
    history: tuple[RetryAttempt, ...] = ()
    status: RetryStatus = RetryStatus.IN_PROGRESS

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RETRY_STATUSES


class RetryDecision(BaseModel):
    should_retry: bool
    reason: str
    action: RetryAction


class EscalationContext(BaseModel):
    attempt_history: tuple[RetryAttempt, ...] = ()
    persistent_issues: list[str] = Field(default_factory=list)
    suggested_action: str = ""


class EscalationDecision(BaseModel):
    should_escalate: bool
    escalation_level: EscalationLevel = EscalationLevel.COORDINATOR
    reason: str
    context: EscalationContext = Field(default_factory=EscalationContext)


class AttemptSummary(BaseModel):
    attempt: int
    action: RetryAction
    issues: list[str] = Field(default_factory=list)


class FailureReport(BaseModel):
    """Terminal audit artifact for a task that did not succeed."""
    model_config = ConfigDict(frozen=True)

    task_id: str
    total_attempts: int
    final_status: RetryStatus
    persistent_issues: list[str] = Field(default_factory=list)
    attempt_summary: list[AttemptSummary] = Field(default_factory=list)
    root_cause_analysis: str
    recommended_action: str
    evidence: list[VerificationEvidence] = Field(default_factory=list)

    @field_validator("final_status")
    @classmethod
    def _final_status_is_unsuccessful(cls, value: RetryStatus) -> RetryStatus:
        if value not in (RetryStatus.FAILED, RetryStatus.ESCALATED):
            raise ValueError("final_status must be 'failed' or 'escalated'")
        return value


# ---------------------------------------------------------------------------
# Agent runner boundary
# ---------------------------------------------------------------------------

class AgentRunResult(BaseModel):
    """Standardized output of one AgentRunner invocation."""
    agent_type: str
    success: bool
    raw_output: Optional[str] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @classmethod
    def ok(cls, agent_type: str, raw_output: str, duration_seconds: float = 0.0) -> "AgentRunResult":
        return cls(
            agent_type=agent_type,
            success=True,
            raw_output=raw_output,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def failure(cls, agent_type: str, error: str, duration_seconds: float = 0.0) -> "AgentRunResult":
        return cls(
            agent_type=agent_type,
            success=False,
            error=error,
            duration_seconds=duration_seconds,
        )


# ---------------------------------------------------------------------------
# Tasks and cycle results
# ---------------------------------------------------------------------------

class TaskSpec(_WireModel):
    """One unit of work driven through the builder-validator cycle."""
    task_id: str
    description: str
    requirements: list[str] = Field(default_factory=list)
    acceptance_criteria: list[str] = Field(default_factory=list)
    validation_type: ValidationType = ValidationType.VALIDATOR
    builder_agent: str = "executor"
    builder_model_class: ModelClass = ModelClass.MEDIUM
    validators: Optional[list[str]] = None
    complexity: Optional[TaskComplexity] = None
    max_retries: Optional[int] = Field(default=None, ge=0)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class CycleResult(BaseModel):
    success: bool = False
    builder_passed: bool = False
    validator_passed: bool = False
    retry_count: int = 0
    evidence: list[VerificationEvidence] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)


class OrchestrationResult(BaseModel):
    """Everything the caller needs after a cycle terminates."""
    task_id: str
    success: bool = False
    cycle: CycleResult = Field(default_factory=CycleResult)
    retry_state: RetryState
    validators: list[str] = Field(default_factory=list)
    escalation: Optional[EscalationDecision] = None
    failure_report: Optional[FailureReport] = None
    final_output: Optional[BuilderOutput] = None
    total_duration_seconds: float = 0.0

    @property
    def outcome(self) -> str:
        if self.success:
            return "success"
        if self.escalation is not None and self.escalation.should_escalate:
            return f"escalated:{self.escalation.escalation_level.value}"
        if self.retry_state.status == RetryStatus.ESCALATED:
            return "escalated"
        return "failed"
