"""Escalation agent for ohmyblack.

Hands a task the builder could not finish to a higher-tier agent
(architect or coordinator) together with the full failure context.
Human escalation never invokes an agent; it is surfaced to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from src.agents.base_agent import BaseAgent
from src.agents.builder import parse_builder_output
from src.agents.runner import AgentRunner
from src.core.models import BuilderOutput, EscalationDecision, FailureReport, RetryState, TaskSpec
from src.llm.router import ModelRouter
from src.verification.prompts import create_escalation_prompt


@dataclass
class EscalationRequest:
    task: TaskSpec
    state: RetryState
    escalation: EscalationDecision
    report: FailureReport
    timeout_seconds: float


class EscalationAgent(BaseAgent):
    """Invokes the agent configured for an escalation level.

    Returns the higher-tier agent's output parsed as a BuilderOutput, or
    None when nothing was (or could be) invoked.
    """

    def __init__(self, runner: AgentRunner, router: Optional[ModelRouter] = None):
        super().__init__(name="Escalation", runner=runner)
        self.router = router or ModelRouter()

    async def process(self, request: EscalationRequest) -> Optional[BuilderOutput]:
        decision = request.escalation
        if not decision.should_escalate:
            return None

        assignment = self.router.escalation(decision.escalation_level)
        if assignment is None:
            self.logger.info(
                "[%s] Task %s needs %s review; not invoking an agent",
                self.name, request.task.task_id, decision.escalation_level.value,
            )
            return None

        prompt = create_escalation_prompt(request.task, request.state, decision, request.report)
        result = await self.invoke(assignment.agent, assignment.model_class, prompt, request.timeout_seconds)
        if not result.success:
            return None
        return parse_builder_output(result.raw_output or "", assignment.agent, request.task.task_id)
