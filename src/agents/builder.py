"""Builder agent for ohmyblack.

Sends the builder (or retry) prompt through the runner and turns the
answer into a BuilderOutput. Builders are free-form LLM agents, so the
parser tries several shapes before settling for a plain-text result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

from src.agents.base_agent import BaseAgent
from src.agents.runner import AgentRunner
from src.core.models import (
    BuilderOutput,
    BuilderStatus,
    Evidence,
    EvidenceKind,
    ModelClass,
    TaskSpec,
)
from src.llm.response_parser import fenced_blocks, find_json_span, load_json_object

FREE_FORM_SUMMARY_CHARS = 500

_AGENT_OUTPUT_MARKER = re.compile(r"AGENT_OUTPUT:\s*\n(.*?)(?:\n\n|$)", re.DOTALL)
_LABELLED_FIELDS: dict[str, re.Pattern[str]] = {
    "agentId": re.compile(r"(?:Agent ID|agentId):\s*([^\n]+)", re.IGNORECASE),
    "taskId": re.compile(r"(?:Task ID|taskId):\s*([^\n]+)", re.IGNORECASE),
    "status": re.compile(r"Status:\s*(success|partial|failed|blocked)\b", re.IGNORECASE),
    "summary": re.compile(r"Summary:\s*([^\n]+)", re.IGNORECASE),
}


def _validate(payload: Optional[dict[str, Any]]) -> Optional[BuilderOutput]:
    if payload is None:
        return None
    try:
        return BuilderOutput.model_validate(payload)
    except ValidationError:
        return None


def _labelled_fields(text: str) -> Optional[dict[str, Any]]:
    fields: dict[str, Any] = {}
    for key, pattern in _LABELLED_FIELDS.items():
        match = pattern.search(text)
        if match is None:
            return None
        fields[key] = match.group(1).strip()
    fields["status"] = fields["status"].lower()
    fields["evidence"] = []
    return fields


def parse_builder_output(raw_text: str, agent_id: str, task_id: str) -> BuilderOutput:
    """Parse a builder's answer. Never raises.

    Tries, in order: fenced JSON blocks (``json``-tagged first), an
    ``AGENT_OUTPUT:`` marker, a raw JSON object containing ``agentId``, and
    labelled ``Agent ID:`` / ``Task ID:`` / ``Status:`` / ``Summary:`` lines.
    If none validates, the text itself becomes a successful free-form result.
    """
    if not raw_text or not raw_text.strip():
        return failed_output(agent_id, task_id, "Builder produced no output")

    marker = _AGENT_OUTPUT_MARKER.search(raw_text)
    span = find_json_span(raw_text, "agentId")

    candidates = [load_json_object(block) for block in fenced_blocks(raw_text)]
    candidates += [
        load_json_object(marker.group(1)) if marker else None,
        load_json_object(span) if span is not None else None,
        _labelled_fields(raw_text),
    ]
    for payload in candidates:
        parsed = _validate(payload)
        if parsed is not None:
            return parsed

    return BuilderOutput(
        agent_id=agent_id,
        task_id=task_id,
        status=BuilderStatus.SUCCESS,
        summary=raw_text[:FREE_FORM_SUMMARY_CHARS],
        evidence=[Evidence(kind=EvidenceKind.COMMAND_OUTPUT, content=raw_text, passed=True)],
    )


def failed_output(agent_id: str, task_id: str, reason: str) -> BuilderOutput:
    return BuilderOutput(
        agent_id=agent_id,
        task_id=task_id,
        status=BuilderStatus.FAILED,
        summary=reason,
        evidence=[],
    )


@dataclass
class BuildRequest:
    task: TaskSpec
    prompt: str
    timeout_seconds: float
    agent_type: Optional[str] = None
    model_class: Optional[ModelClass] = None


class BuilderAgent(BaseAgent):
    """Runs one builder attempt.

    A transport failure (timeout, crash, provider error) becomes a FAILED
    BuilderOutput carrying the error text, so the cycle treats it like any
    other failed attempt.
    """

    def __init__(self, runner: AgentRunner):
        super().__init__(name="Builder", runner=runner)

    async def process(self, request: BuildRequest) -> BuilderOutput:
        task = request.task
        agent_type = request.agent_type or task.builder_agent
        model_class = request.model_class or task.builder_model_class

        result = await self.invoke(agent_type, model_class, request.prompt, request.timeout_seconds)
        if not result.success:
            return failed_output(agent_type, task.task_id, result.error or "Builder agent invocation failed")

        output = parse_builder_output(result.raw_output or "", agent_type, task.task_id)
        self.logger.info(
            "[%s] Task %s: status=%s files=%d",
            self.name, task.task_id, output.status.value, len(output.files_modified or []),
        )
        return output
