"""Abstract base agent for ohmyblack.

Every role (builder, validator, escalation) goes through the same
lifecycle: compose a prompt, call the runner under a timeout guard, turn
the raw output into a domain result, and log metrics throughout.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from src.agents.runner import AgentRunner
from src.core.exceptions import AgentError, AgentTimeoutError
from src.core.models import AgentRunResult, ModelClass


class BaseAgent(ABC):
    """Base class for all ohmyblack agents.

    Subclasses implement ``process()``. Dependencies (runner, router) are
    injected through __init__; there is no global state.
    """

    def __init__(self, name: str, runner: AgentRunner):
        self.name = name
        self.runner = runner
        self.logger = logging.getLogger(f"ohmyblack.agent.{name.lower()}")
        self._metrics: dict[str, Any] = {
            "total_invocations": 0,
            "total_failures": 0,
            "last_duration_seconds": 0.0,
        }

    @abstractmethod
    async def process(self, request: Any) -> Any:
        """Turn a role-specific request into a role-specific result."""

    async def run(self, request: Any) -> Any:
        """Execute the agent with lifecycle logging.

        Agents should override process(), not run(). Transport failures are
        already folded into the result by ``invoke``; anything raised here is
        a programming error and propagates.
        """
        self.logger.info("[%s] Starting: %s", self.name, _summarize_request(request))
        start = time.monotonic()
        try:
            result = await self.process(request)
        except Exception as e:
            self.logger.error("[%s] Error: %s", self.name, e, exc_info=True)
            raise
        self.logger.info("[%s] Complete (%.2fs)", self.name, time.monotonic() - start)
        return result

    async def invoke(
        self,
        agent_type: str,
        model_class: ModelClass,
        prompt: str,
        timeout_seconds: float,
    ) -> AgentRunResult:
        """Call the runner under a timeout guard. Never raises for transport problems."""
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self.runner.invoke(agent_type, model_class, prompt, timeout_seconds),
                timeout=timeout_seconds,
            )
        except TimeoutError:
            result = AgentRunResult.failure(agent_type, str(AgentTimeoutError(agent_type, timeout_seconds)))
        except (AgentError, OSError) as e:
            result = AgentRunResult.failure(agent_type, str(e))

        duration = time.monotonic() - start
        self._metrics["total_invocations"] += 1
        self._metrics["last_duration_seconds"] = duration
        if not result.success:
            self._metrics["total_failures"] += 1
            self.logger.warning("[%s] %s failed after %.2fs: %s", self.name, agent_type, duration, result.error)
        else:
            self.logger.debug("[%s] %s answered in %.2fs", self.name, agent_type, duration)
        return result.model_copy(update={"duration_seconds": duration})

    def get_metrics(self) -> dict[str, Any]:
        """Return a copy of the agent's runtime metrics."""
        return self._metrics.copy()


def _summarize_request(request: Any) -> str:
    """Create a short log-safe summary of agent input."""
    task = getattr(request, "task", None)
    if task is not None and hasattr(task, "task_id"):
        return f"task='{task.task_id}'"
    return type(request).__name__
