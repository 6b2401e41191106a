"""Issue taxonomy for the retry/escalation state machine.

Classifies validator issue text as retryable (another builder attempt can
fix it) or non-retryable (needs a higher authority). The keyword tables
are plain data behind ``IssueClassifier`` so a different classifier can be
injected without touching the state machine.

Unknown issues are NOT retryable: an issue that matches neither table
escalates instead of looping.
"""

from __future__ import annotations

from dataclasses import dataclass, field

SECURITY_KEYWORDS: tuple[str, ...] = (
    "security",
    "vulnerability",
    "sensitive data",
    "sql injection",
    "xss",
    "authentication",
    "authorization",
    "api key",
    "hardcoded secret",
    "hardcoded credential",
    "credentials",
    "password",
)

DEPENDENCY_KEYWORDS: tuple[str, ...] = (
    "missing dependency",
    "module not found",
    "cannot find module",
    "package not installed",
    "missing configuration",
    "config file not found",
)

ARCHITECTURE_KEYWORDS: tuple[str, ...] = (
    "architectural",
    "design flaw",
    "fundamental issue",
)

MANUAL_KEYWORDS: tuple[str, ...] = (
    "requires manual",
    "human review",
    "cannot proceed",
)

RETRYABLE_KEYWORDS: tuple[str, ...] = (
    # syntax
    "syntax error",
    "parse error",
    "unexpected token",
    "missing semicolon",
    "missing bracket",
    "indentation",
    # types
    "type error",
    "type mismatch",
    "cannot assign",
    "incompatible type",
    "undefined variable",
    # logic
    "logic error",
    "incorrect implementation",
    "edge case",
    "boundary condition",
    "null check",
    "error handling",
)

# Escalation routing uses narrower tables than the retry gate.
ESCALATION_SECURITY_KEYWORDS: tuple[str, ...] = (
    "security",
    "vulnerability",
    "sensitive data",
    "api key",
    "hardcoded secret",
    "hardcoded credential",
)

ESCALATION_DEPENDENCY_KEYWORDS: tuple[str, ...] = (
    "missing dependency",
    "module not found",
    "package not installed",
    "config file not found",
)


def _matches(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


@dataclass(frozen=True)
class IssueClassifier:
    """Keyword-table classifier for validator issue text."""

    non_retryable: tuple[str, ...] = field(
        default=SECURITY_KEYWORDS + DEPENDENCY_KEYWORDS + ARCHITECTURE_KEYWORDS + MANUAL_KEYWORDS
    )
    retryable: tuple[str, ...] = RETRYABLE_KEYWORDS
    security: tuple[str, ...] = ESCALATION_SECURITY_KEYWORDS
    dependency: tuple[str, ...] = ESCALATION_DEPENDENCY_KEYWORDS

    def is_retryable(self, issue: str) -> bool:
        if _matches(issue, self.non_retryable):
            return False
        if _matches(issue, self.retryable):
            return True
        return False

    def is_security_issue(self, issue: str) -> bool:
        return _matches(issue, self.security)

    def is_dependency_issue(self, issue: str) -> bool:
        return _matches(issue, self.dependency)

    def is_type_issue(self, issue: str) -> bool:
        return _matches(issue, ("type error", "type mismatch"))


DEFAULT_CLASSIFIER = IssueClassifier()


def is_retryable(issue: str) -> bool:
    """Return True only if the issue is known to be fixable by a retry."""
    return DEFAULT_CLASSIFIER.is_retryable(issue)
