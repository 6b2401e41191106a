"""Builder-validator cycle orchestrator.

Drives one task through build -> validate -> decide until the retry
state machine reaches a terminal status:

  Builder -> Validators (concurrent) -> aggregate -> should_retry
    retry    -> retry prompt with the validators' feedback -> Builder
    escalate -> optional architect/coordinator pass, re-validated once
    fail     -> failure report

This is the only layer that produces a terminal outcome. Everything it
calls returns structured data.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from src.agents.builder import BuilderAgent, BuildRequest
from src.agents.escalation import EscalationAgent, EscalationRequest
from src.agents.runner import AgentRunner
from src.agents.validator import ValidatorAgent, ValidatorPanel
from src.core.config import CycleConfig
from src.core.models import (
    BuilderOutput,
    BuilderStatus,
    CycleResult,
    OrchestrationResult,
    RetryAction,
    RetryState,
    RetryStatus,
    TaskComplexity,
    TaskSpec,
    ValidationType,
    ValidatorVerdict,
    VerdictStatus,
)
from src.llm.router import ModelRouter
from src.verification.aggregator import (
    aggregate,
    builder_evidence_to_verification,
    builder_failure_verdict,
    combine_for_decision,
)
from src.verification.classifier import DEFAULT_CLASSIFIER, IssueClassifier
from src.verification.prompts import create_builder_task_prompt, create_retry_prompt
from src.verification.retry_logic import (
    create_retry_state,
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

logger = logging.getLogger("ohmyblack.orchestrator.cycle")


class CycleOrchestrator:
    """Runs TaskSpecs through the builder-validator cycle.

    Injected dependencies:
        runner: AgentRunner shared by builder, validators and escalation.
        config: Cycle settings (retry ceiling, timeouts, escalation switch).
        router: Resolves validator kinds and escalation levels to agents.
        classifier: Retryable/non-retryable issue classifier.
    """

    def __init__(
        self,
        runner: AgentRunner,
        config: Optional[CycleConfig] = None,
        router: Optional[ModelRouter] = None,
        classifier: IssueClassifier = DEFAULT_CLASSIFIER,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        self.config = config or CycleConfig()
        self.router = router or ModelRouter()
        self.classifier = classifier
        self.builder = BuilderAgent(runner)
        self.panel = ValidatorPanel(ValidatorAgent(runner, self.router))
        self.escalation_agent = EscalationAgent(runner, self.router)
        self._progress = progress_callback

    def _emit(self, message: str) -> None:
        logger.info(message)
        if self._progress is not None:
            self._progress(message)

    async def run_many(self, tasks: list[TaskSpec]) -> list[OrchestrationResult]:
        """Run tasks one after another."""
        return [await self.run_cycle(task) for task in tasks]

    async def run_cycle(self, task: TaskSpec) -> OrchestrationResult:
        """Run one task to a terminal outcome."""
        start = time.monotonic()
        max_retries = task.max_retries if task.max_retries is not None else self.config.max_retries
        state = create_retry_state(max_retries)

        if task.validation_type == ValidationType.SELF_ONLY or task.validators == []:
            result = await self._run_self_only(task, state)
        else:
            result = await self._run_validated(task, state, max_retries)

        result.total_duration_seconds = time.monotonic() - start
        self._emit(
            f"Task {task.task_id}: {result.outcome} after {len(result.retry_state.history)} attempt(s) "
            f"({result.total_duration_seconds:.1f}s)"
        )
        return result

    def _timeout(self, task: TaskSpec) -> float:
        return task.timeout_seconds or self.config.timeout_seconds

    def _resolve_validators(self, task: TaskSpec, output: BuilderOutput) -> list[str]:
        if task.validators is not None:
            return list(task.validators)
        if task.complexity is not None:
            complexity = task.complexity
        elif output.halted:
            complexity = TaskComplexity.MEDIUM
        else:
            complexity = determine_task_complexity(output)
        return select_validators(task.validation_type, complexity)

    async def _run_self_only(self, task: TaskSpec, state: RetryState) -> OrchestrationResult:
        """Trust the builder's own verification; no validator is invoked."""
        prompt = create_builder_task_prompt(task, [], state.max_attempts)
        output = await self.builder.run(BuildRequest(task, prompt, self._timeout(task)))
        check = check_builder_self_validation(output)
        success = output.status == BuilderStatus.SUCCESS and check.passed

        cycle = CycleResult(
            success=success,
            builder_passed=output.status == BuilderStatus.SUCCESS,
            validator_passed=check.passed,
            evidence=[builder_evidence_to_verification(ev) for ev in output.evidence],
        )
        if success:
            state = record_attempt(state, output, None, RetryAction.SUCCESS)
            return OrchestrationResult(
                task_id=task.task_id, success=True, cycle=cycle, retry_state=state, final_output=output,
            )

        issues = [check.last_error or "Builder self-validation failed"] if not check.passed else []
        if output.status != BuilderStatus.SUCCESS:
            issues.insert(0, f"Builder phase {output.status.value}: {output.summary}")
        verdict = ValidatorVerdict(
            validator_kind="self",
            task_id=task.task_id,
            status=VerdictStatus.REJECTED,
            issues=issues,
        )
        cycle.issues = issues
        state = record_attempt(state, output, verdict, RetryAction.FAIL)
        return OrchestrationResult(
            task_id=task.task_id,
            cycle=cycle,
            retry_state=state,
            failure_report=generate_failure_report(task.task_id, state, verdict, self.classifier),
            final_output=output,
        )

    async def _validate(
        self,
        validators: list[str],
        output: BuilderOutput,
        task: TaskSpec,
        cycle: CycleResult,
    ) -> ValidatorVerdict:
        verdicts = await self.panel.validate(validators, output, task, self._timeout(task))
        aggregated = aggregate(verdicts)
        cycle.evidence.extend(aggregated.all_evidence)
        return combine_for_decision(aggregated, task.task_id)

    async def _run_validated(self, task: TaskSpec, state: RetryState, max_retries: int) -> OrchestrationResult:
        cycle = CycleResult()
        result = OrchestrationResult(task_id=task.task_id, cycle=cycle, retry_state=state)
        validators: Optional[list[str]] = list(task.validators) if task.validators is not None else None
        prompt = create_builder_task_prompt(task, validators, max_retries)
        verdict: Optional[ValidatorVerdict] = None

        while not state.is_terminal:
            attempt = state.current_attempt + 1
            self._emit(f"Task {task.task_id}: attempt {attempt}/{state.max_attempts + 1}")

            output = await self.builder.run(BuildRequest(task, prompt, self._timeout(task)))
            result.final_output = output
            cycle.builder_passed = not output.halted
            if validators is None:
                validators = self._resolve_validators(task, output)
            result.validators = validators

            if output.halted:
                verdict = builder_failure_verdict(output)
            else:
                verdict = await self._validate(validators, output, task, cycle)
            cycle.validator_passed = verdict.status == VerdictStatus.APPROVED
            cycle.issues = list(verdict.issues)

            if verdict.status == VerdictStatus.APPROVED:
                state = record_attempt(state, output, verdict, RetryAction.SUCCESS)
                break

            decision = should_retry(state, verdict, self.classifier)
            logger.info(
                "Task %s attempt %d: %s (%s)",
                task.task_id, attempt, decision.action.value, decision.reason,
            )

            if decision.action == RetryAction.RETRY:
                state = record_attempt(state, output, verdict, RetryAction.RETRY)
                prompt = create_retry_prompt(task, output, verdict, state.current_attempt + 1)
            elif decision.action == RetryAction.ESCALATE:
                state, fixed = await self._escalate(task, state, output, verdict, validators, result)
                if fixed is not None:
                    result.final_output = fixed
            else:
                state = record_attempt(state, output, verdict, RetryAction.FAIL)

        result.retry_state = state
        result.success = state.status == RetryStatus.SUCCESS
        cycle.success = result.success
        cycle.retry_count = sum(1 for a in state.history if a.action == RetryAction.RETRY)
        if not result.success:
            result.failure_report = generate_failure_report(task.task_id, state, verdict, self.classifier)
        return result

    async def _escalate(
        self,
        task: TaskSpec,
        state: RetryState,
        output: BuilderOutput,
        verdict: ValidatorVerdict,
        validators: list[str],
        result: OrchestrationResult,
    ) -> tuple[RetryState, Optional[BuilderOutput]]:
        """Record an escalation, first giving a higher-tier agent one chance to fix it."""
        escalation = determine_escalation(state, verdict, self.classifier)
        result.escalation = escalation
        self._emit(
            f"Task {task.task_id}: escalating to {escalation.escalation_level.value} ({escalation.reason})"
            if escalation.should_escalate
            else f"Task {task.task_id}: halted for review ({escalation.reason})"
        )

        if self.config.execute_escalation and escalation.should_escalate:
            report = generate_failure_report(task.task_id, state, verdict, self.classifier)
            fix = await self.escalation_agent.run(EscalationRequest(
                task=task,
                state=state,
                escalation=escalation,
                report=report,
                timeout_seconds=self.config.escalation_timeout_seconds,
            ))
            if fix is not None and fix.status == BuilderStatus.SUCCESS:
                fix_verdict = await self._validate(validators, fix, task, result.cycle)
                if fix_verdict.status == VerdictStatus.APPROVED:
                    logger.info("Task %s: %s output approved", task.task_id, escalation.escalation_level.value)
                    result.cycle.validator_passed = True
                    result.cycle.issues = []
                    return record_attempt(state, fix, fix_verdict, RetryAction.SUCCESS), fix
                logger.info(
                    "Task %s: %s output rejected (%s)",
                    task.task_id, escalation.escalation_level.value, fix_verdict.status.value,
                )

        return record_attempt(state, output, verdict, RetryAction.ESCALATE), None
