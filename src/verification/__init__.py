"""Builder-validator verification core: parsing, aggregation and retry decisions."""

from src.verification.aggregator import aggregate, combine_for_decision, verdict_to_evidence
from src.verification.classifier import IssueClassifier, is_retryable
from src.verification.retry_logic import (
    create_retry_state,
    detect_persistent_issues,
    determine_escalation,
    generate_failure_report,
    record_attempt,
    should_retry,
)
from src.verification.selection import (
    check_builder_self_validation,
    determine_task_complexity,
    select_validators,
)
from src.verification.validator_parser import parse_validator_output

__all__ = [
    "parse_validator_output",
    "aggregate",
    "combine_for_decision",
    "verdict_to_evidence",
    "IssueClassifier",
    "is_retryable",
    "create_retry_state",
    "record_attempt",
    "should_retry",
    "detect_persistent_issues",
    "determine_escalation",
    "generate_failure_report",
    "select_validators",
    "determine_task_complexity",
    "check_builder_self_validation",
]
