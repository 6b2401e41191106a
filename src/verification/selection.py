"""Validator selection and builder self-validation checks."""

from __future__ import annotations

from src.core.models import BuilderOutput, SelfValidation, TaskComplexity, ValidationType

NO_SELF_VALIDATION_ERROR = "No self-validation data provided by builder"

_VALIDATORS_BY_COMPLEXITY: dict[TaskComplexity, list[str]] = {
    TaskComplexity.LOW: ["syntax"],
    TaskComplexity.MEDIUM: ["syntax", "logic"],
    TaskComplexity.HIGH: ["syntax", "logic", "security"],
}

FULL_VALIDATOR_SUITE = ["syntax", "logic", "security", "integration"]


def select_validators(validation_type: ValidationType, complexity: TaskComplexity) -> list[str]:
    """Return the validator kinds to run for a validation level and complexity."""
    if validation_type == ValidationType.SELF_ONLY:
        return []
    if validation_type == ValidationType.ARCHITECT:
        return list(FULL_VALIDATOR_SUITE)
    return list(_VALIDATORS_BY_COMPLEXITY[complexity])


def determine_task_complexity(output: BuilderOutput) -> TaskComplexity:
    """Estimate complexity from the number of files the builder touched."""
    touched = len(output.files_modified or [])
    if touched <= 1:
        return TaskComplexity.LOW
    if touched <= 3:
        return TaskComplexity.MEDIUM
    return TaskComplexity.HIGH


def check_builder_self_validation(output: BuilderOutput) -> SelfValidation:
    if output.self_validation is None:
        return SelfValidation(passed=False, retry_count=0, last_error=NO_SELF_VALIDATION_ERROR)
    return output.self_validation
