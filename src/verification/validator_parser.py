"""Validator output parser.

Turns whatever text a validator agent produced into a ValidatorVerdict.
Stages, first match wins:

1. Fenced blocks parsed as JSON objects, ``json``-tagged blocks first.
   The first object carrying a recognized status wins.
2. A raw JSON object span mentioning ``validatorType`` or ``status``,
   when no fenced block holds a JSON object.
3. Marker lines (``VERDICT:``, ``ISSUE:``, ``RECOMMENDATION:``, ``[✓]`` ...).

Parsing never raises. Output with no usable signal, or a JSON verdict with
an unrecognized status, degrades to NEEDS_REVIEW with a "could not parse"
issue so the state machine escalates it instead of dropping it.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from src.core.models import Severity, ValidatorCheck, ValidatorVerdict, VerdictStatus
from src.llm.response_parser import fenced_blocks, find_json_span, load_json_object

logger = logging.getLogger("ohmyblack.verification.parser")

UNPARSEABLE_ISSUE = "Could not parse validator response"
UNPARSEABLE_RECOMMENDATION = "Manually review the validator output"

_STATUS_SYNONYMS: dict[str, VerdictStatus] = {
    "APPROVED": VerdictStatus.APPROVED,
    "APPROVE": VerdictStatus.APPROVED,
    "PASS": VerdictStatus.APPROVED,
    "PASSED": VerdictStatus.APPROVED,
    "SUCCESS": VerdictStatus.APPROVED,
    "REJECTED": VerdictStatus.REJECTED,
    "REJECT": VerdictStatus.REJECTED,
    "FAIL": VerdictStatus.REJECTED,
    "FAILED": VerdictStatus.REJECTED,
    "FAILURE": VerdictStatus.REJECTED,
    "NEEDS_REVIEW": VerdictStatus.NEEDS_REVIEW,
    "NEEDS REVIEW": VerdictStatus.NEEDS_REVIEW,
    "REVIEW": VerdictStatus.NEEDS_REVIEW,
    "PENDING": VerdictStatus.NEEDS_REVIEW,
    "UNKNOWN": VerdictStatus.NEEDS_REVIEW,
}

_SEVERITY_SYNONYMS: dict[str, Severity] = {
    "critical": Severity.CRITICAL,
    "major": Severity.MAJOR,
    "high": Severity.MAJOR,
    "medium": Severity.MAJOR,
    "warning": Severity.MAJOR,
    "minor": Severity.MINOR,
    "low": Severity.MINOR,
    "info": Severity.MINOR,
}

_TRUTHY = {"true", "yes", "pass", "passed", "ok", "1"}

_LINE_PREFIX = r"^[ \t>*#-]*"
_VERDICT_MARKER = re.compile(
    _LINE_PREFIX + r"(?:VERDICT|STATUS|RESULT)\**\s*:\s*\**\s*(APPROVED|REJECTED|NEEDS[_ ]REVIEW)\b",
    re.IGNORECASE | re.MULTILINE,
)
_ISSUE_MARKER = re.compile(
    _LINE_PREFIX + r"(?:ISSUE|ERROR|PROBLEM)\**\s*:\s*\**\s*(.+)$",
    re.IGNORECASE | re.MULTILINE,
)
_RECOMMENDATION_MARKER = re.compile(
    _LINE_PREFIX + r"(?:RECOMMENDATION|SUGGESTION|FIX)\**\s*:\s*\**\s*(.+)$",
    re.IGNORECASE | re.MULTILINE,
)
_CHECK_MARKER = re.compile(r"\[([✓✗xX])\]\s*(.+)")


def normalize_status(value: Any) -> Optional[VerdictStatus]:
    """Map a status string or synonym to a canonical status, else None."""
    if not isinstance(value, str):
        return None
    return _STATUS_SYNONYMS.get(value.strip().upper())


def normalize_severity(value: Any) -> Severity:
    """Map a severity string to a canonical severity; unknown means major."""
    if not isinstance(value, str):
        return Severity.MAJOR
    return _SEVERITY_SYNONYMS.get(value.strip().lower(), Severity.MAJOR)


def unparseable_verdict(validator_kind: str, task_id: str) -> ValidatorVerdict:
    return ValidatorVerdict(
        validator_kind=validator_kind,
        task_id=task_id,
        status=VerdictStatus.NEEDS_REVIEW,
        issues=[UNPARSEABLE_ISSUE],
        recommendations=[UNPARSEABLE_RECOMMENDATION],
    )


def parse_validator_output(raw_text: Any, validator_kind: str, task_id: str) -> ValidatorVerdict:
    """Parse one validator's raw output into a verdict. Never raises."""
    if not isinstance(raw_text, str) or not raw_text.strip():
        return unparseable_verdict(validator_kind, task_id)

    payloads = [p for p in map(load_json_object, fenced_blocks(raw_text)) if p is not None]
    if not payloads:
        span = find_json_span(raw_text, "validatorType") or find_json_span(raw_text, "status")
        payload = load_json_object(span) if span is not None else None
        if payload is not None:
            payloads.append(payload)

    for payload in payloads:
        if normalize_status(payload.get("status")) is not None:
            return _verdict_from_payload(payload, validator_kind, task_id)

    # A verdict object with an unrecognized status is unparseable, not marker text.
    for payload in payloads:
        if "status" in payload:
            return _verdict_from_payload(payload, validator_kind, task_id)

    logger.debug("Validator '%s' output held no JSON verdict, scanning markers", validator_kind)
    return _parse_markers(raw_text, validator_kind, task_id)


def _verdict_from_payload(payload: dict[str, Any], validator_kind: str, task_id: str) -> ValidatorVerdict:
    status = normalize_status(payload.get("status"))
    if status is None:
        logger.warning(
            "Validator '%s' returned unrecognized status %r; treating as unparseable",
            validator_kind, payload.get("status"),
        )
        return unparseable_verdict(validator_kind, task_id)

    return ValidatorVerdict(
        validator_kind=str(payload.get("validatorType") or validator_kind),
        task_id=str(payload.get("taskId") or task_id),
        status=status,
        checks=[_coerce_check(c) for c in _as_list(payload.get("checks")) if isinstance(c, dict)],
        issues=[str(i) for i in _as_list(payload.get("issues"))],
        recommendations=[str(r) for r in _as_list(payload.get("recommendations"))],
    )


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _coerce_check(data: dict[str, Any]) -> ValidatorCheck:
    return ValidatorCheck(
        name=str(data.get("name") or "Unknown check"),
        passed=_coerce_bool(data.get("passed")),
        evidence=str(data.get("evidence") or ""),
        severity=normalize_severity(data.get("severity")),
    )


def _parse_markers(raw_text: str, validator_kind: str, task_id: str) -> ValidatorVerdict:
    status = VerdictStatus.NEEDS_REVIEW
    verdict_match = _VERDICT_MARKER.search(raw_text)
    if verdict_match:
        status = normalize_status(verdict_match.group(1).replace("_", " ")) or status

    issues = [m.group(1).strip() for m in _ISSUE_MARKER.finditer(raw_text)]
    recommendations = [m.group(1).strip() for m in _RECOMMENDATION_MARKER.finditer(raw_text)]
    checks = [
        ValidatorCheck(
            name=m.group(2).strip(),
            passed=m.group(1) == "✓",
            evidence="Extracted from structured output",
            severity=Severity.MAJOR,
        )
        for m in _CHECK_MARKER.finditer(raw_text)
    ]

    if not (verdict_match or issues or checks):
        logger.warning("Validator '%s' output had no recognizable structure", validator_kind)
        return unparseable_verdict(validator_kind, task_id)

    return ValidatorVerdict(
        validator_kind=validator_kind,
        task_id=task_id,
        status=status,
        checks=checks,
        issues=issues,
        recommendations=recommendations,
    )
