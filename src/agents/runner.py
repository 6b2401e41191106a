"""Agent runners: the boundary between the orchestration core and real agents.

An ``AgentRunner`` takes an agent type, a model class and a prompt and
returns an ``AgentRunResult``. Transport problems (missing executable,
non-zero exit, timeouts, provider errors) come back as failed results;
runners do not raise for them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

from src.core.config import AppConfig, RunnerConfig
from src.core.exceptions import AgentTimeoutError, ConfigError, LLMError
from src.core.models import AgentRunResult, ModelClass
from src.llm.client import LLMMessage, OpenRouterClient
from src.llm.router import ModelRouter

logger = logging.getLogger("ohmyblack.agents.runner")


class AgentRunner(ABC):
    """Abstract capability that executes one agent invocation."""

    @abstractmethod
    async def invoke(
        self,
        agent_type: str,
        model_class: ModelClass,
        prompt: str,
        timeout_seconds: float,
    ) -> AgentRunResult:
        """Run ``prompt`` through ``agent_type`` and return its raw output."""

    async def close(self) -> None:
        """Release transport resources held by the runner."""


class CLIAgentRunner(AgentRunner):
    """Runs agents through a local CLI, one subprocess per invocation.

    The default command line is ``claude --print --model <id> <prompt>``.
    """

    def __init__(self, config: Optional[RunnerConfig] = None, router: Optional[ModelRouter] = None):
        self.config = config or RunnerConfig()
        self.router = router or ModelRouter()

    def build_command(self, agent_type: str, model_id: str, prompt: str) -> list[str]:
        framed = f"You are the {agent_type} agent.\n\n{prompt}"
        return [self.config.cli_command, *self.config.cli_args, "--model", model_id, framed]

    async def invoke(
        self,
        agent_type: str,
        model_class: ModelClass,
        prompt: str,
        timeout_seconds: float,
    ) -> AgentRunResult:
        start = time.monotonic()
        try:
            command = self.build_command(agent_type, self.router.get_model(model_class), prompt)
        except ConfigError as e:
            return AgentRunResult.failure(agent_type, str(e))

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning("Could not launch '%s' for %s: %s", command[0], agent_type, e)
            return AgentRunResult.failure(
                agent_type, f"Failed to launch '{command[0]}': {e}", time.monotonic() - start,
            )

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_seconds)
        except TimeoutError:
            logger.warning("Agent %s exceeded %.1fs, killing pid %s", agent_type, timeout_seconds, proc.pid)
            return AgentRunResult.failure(
                agent_type,
                str(AgentTimeoutError(agent_type, timeout_seconds)),
                time.monotonic() - start,
            )
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        duration = time.monotonic() - start
        out = stdout.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            err = stderr.decode("utf-8", errors="replace").strip()
            return AgentRunResult.failure(
                agent_type,
                f"Exited with code {proc.returncode}: {err[:500] or 'no stderr'}",
                duration,
            )
        if not out.strip():
            return AgentRunResult.failure(agent_type, "Agent produced no output", duration)
        return AgentRunResult.ok(agent_type, out, duration)


class OpenRouterAgentRunner(AgentRunner):
    """Runs agents as single chat completions against OpenRouter."""

    def __init__(self, client: Optional[OpenRouterClient] = None, router: Optional[ModelRouter] = None):
        self.client = client or OpenRouterClient()
        self.router = router or ModelRouter()

    async def invoke(
        self,
        agent_type: str,
        model_class: ModelClass,
        prompt: str,
        timeout_seconds: float,
    ) -> AgentRunResult:
        start = time.monotonic()
        messages = [
            LLMMessage("system", f"You are the {agent_type} agent in a builder-validator workflow."),
            LLMMessage("user", prompt),
        ]
        try:
            model = self.router.get_model(model_class)
            response = await asyncio.wait_for(
                self.client.complete(messages, model=model),
                timeout=timeout_seconds,
            )
        except TimeoutError:
            return AgentRunResult.failure(
                agent_type,
                str(AgentTimeoutError(agent_type, timeout_seconds)),
                time.monotonic() - start,
            )
        except (LLMError, ConfigError) as e:
            logger.warning("OpenRouter call for %s failed: %s", agent_type, e)
            return AgentRunResult.failure(agent_type, str(e), time.monotonic() - start)
        return AgentRunResult.ok(agent_type, response.content, time.monotonic() - start)

    async def close(self) -> None:
        await self.client.close()


def create_runner(config: AppConfig, router: Optional[ModelRouter] = None) -> AgentRunner:
    """Build the runner backend named in ``config.runner.backend``."""
    backend = config.runner.backend.lower()
    if backend == "cli":
        return CLIAgentRunner(config.runner, router)
    if backend == "openrouter":
        return OpenRouterAgentRunner(OpenRouterClient(config.llm), router)
    raise ConfigError(f"Unknown runner backend '{config.runner.backend}'. Use 'cli' or 'openrouter'.")
