"""Validator agents for ohmyblack.

A ValidatorAgent inspects one builder output along one axis (syntax,
logic, security, integration) and returns a ValidatorVerdict. The
ValidatorPanel runs every selected validator concurrently and waits for
all of them; a validator that crashes or times out is reported as a
rejection instead of cancelling its siblings.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from src.agents.base_agent import BaseAgent
from src.agents.runner import AgentRunner
from src.core.models import (
    BuilderOutput,
    Severity,
    TaskSpec,
    ValidatorCheck,
    ValidatorVerdict,
    VerdictStatus,
)
from src.llm.router import ModelRouter
from src.verification.prompts import create_validator_prompt
from src.verification.validator_parser import parse_validator_output


def execution_failure_verdict(kind: str, task_id: str, error: str) -> ValidatorVerdict:
    """Stand-in verdict for a validator that never produced an answer."""
    return ValidatorVerdict(
        validator_kind=kind,
        task_id=task_id,
        status=VerdictStatus.REJECTED,
        checks=[ValidatorCheck(
            name="Validator execution",
            passed=False,
            evidence=error,
            severity=Severity.MAJOR,
        )],
        issues=[f"Validator execution failed: {error}"],
        recommendations=["Re-run the validator or check the agent runner"],
    )


@dataclass
class ValidationRequest:
    kind: str
    output: BuilderOutput
    task: TaskSpec
    timeout_seconds: float


class ValidatorAgent(BaseAgent):
    """Runs one validator kind against one builder output."""

    def __init__(self, runner: AgentRunner, router: Optional[ModelRouter] = None):
        super().__init__(name="Validator", runner=runner)
        self.router = router or ModelRouter()

    async def process(self, request: ValidationRequest) -> ValidatorVerdict:
        assignment = self.router.validator(request.kind)
        prompt = create_validator_prompt(request.kind, request.output, request.task)

        result = await self.invoke(
            assignment.agent, assignment.model_class, prompt, request.timeout_seconds,
        )
        if not result.success:
            return execution_failure_verdict(
                request.kind, request.task.task_id, result.error or "unknown error",
            )

        verdict = parse_validator_output(result.raw_output, request.kind, request.task.task_id)
        self.logger.info(
            "[%s] %s verdict for %s: %s (%d issues)",
            self.name, request.kind, request.task.task_id, verdict.status.value, len(verdict.issues),
        )
        return verdict


class ValidatorPanel:
    """Concurrent fan-out over the selected validator kinds."""

    def __init__(self, agent: ValidatorAgent):
        self.agent = agent

    async def validate(
        self,
        kinds: list[str],
        output: BuilderOutput,
        task: TaskSpec,
        timeout_seconds: float,
    ) -> list[ValidatorVerdict]:
        """Run every validator and return one verdict per kind, in input order."""
        results = await asyncio.gather(
            *(
                self.agent.run(ValidationRequest(kind, output, task, timeout_seconds))
                for kind in kinds
            ),
            return_exceptions=True,
        )

        verdicts: list[ValidatorVerdict] = []
        for kind, result in zip(kinds, results):
            if isinstance(result, BaseException):
                self.agent.logger.warning("Validator %s raised %s: %s", kind, type(result).__name__, result)
                result = execution_failure_verdict(kind, task.task_id, f"{type(result).__name__}: {result}")
            verdicts.append(result)
        return verdicts
