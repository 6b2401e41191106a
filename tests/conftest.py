"""Shared fixtures for ohmyblack tests.

Agent behaviour is scripted through FakeRunner, a real AgentRunner
implementation that replays canned outputs per agent type. Nothing here
reaches a network or spawns an LLM.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

import pytest
from dotenv import load_dotenv

# Load .env from project root so optional API keys are available
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

from src.agents.runner import AgentRunner
from src.core.config import AppConfig, CycleConfig, ModelRegistry, load_config, load_model_registry
from src.core.models import AgentRunResult, ModelClass, TaskSpec

ScriptItem = Union[str, AgentRunResult, BaseException]


class FakeRunner(AgentRunner):
    """Replays scripted responses per agent type.

    Each agent type owns a queue; items are consumed in order and the last
    item repeats once the queue is down to one. A string is a successful
    raw output, an AgentRunResult is returned as-is, an exception is raised.
    """

    def __init__(self, script: Optional[dict[str, list[ScriptItem]]] = None):
        self.script = {agent: list(items) for agent, items in (script or {}).items()}
        self.calls: list[dict[str, Any]] = []

    async def invoke(
        self,
        agent_type: str,
        model_class: ModelClass,
        prompt: str,
        timeout_seconds: float,
    ) -> AgentRunResult:
        self.calls.append({
            "agent_type": agent_type,
            "model_class": model_class,
            "prompt": prompt,
            "timeout_seconds": timeout_seconds,
        })
        queue = self.script.get(agent_type)
        if not queue:
            return AgentRunResult.failure(agent_type, f"no scripted response for {agent_type}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, AgentRunResult):
            return item
        return AgentRunResult.ok(agent_type, item)

    def calls_for(self, agent_type: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["agent_type"] == agent_type]


def builder_reply(
    status: str = "success",
    task_id: str = "t1",
    agent_id: str = "executor",
    files: int = 1,
    self_passed: Optional[bool] = True,
    summary: str = "Implemented the change",
) -> str:
    payload: dict[str, Any] = {
        "agentId": agent_id,
        "taskId": task_id,
        "status": status,
        "summary": summary,
        "evidence": [{"type": "test_result", "content": "3 passed", "passed": True}],
        "filesModified": [
            {"path": f"src/file_{i}.py", "changeType": "modified", "diagnosticsClean": True}
            for i in range(files)
        ],
        "timestamp": 1_700_000_000_000,
    }
    if self_passed is not None:
        payload["selfValidation"] = {"passed": self_passed, "retryCount": 0}
    return "Done.\n```json\n" + json.dumps(payload) + "\n```\n"


def verdict_reply(
    kind: str,
    status: str = "APPROVED",
    issues: Optional[list[str]] = None,
    checks: Optional[list[dict[str, Any]]] = None,
    recommendations: Optional[list[str]] = None,
    task_id: str = "t1",
) -> str:
    payload = {
        "validatorType": kind,
        "taskId": task_id,
        "status": status,
        "checks": checks or [],
        "issues": issues or [],
        "recommendations": recommendations or [],
    }
    return "```json\n" + json.dumps(payload) + "\n```"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config_dir() -> Path:
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def app_config(config_dir: Path) -> AppConfig:
    return load_config(config_dir=config_dir)


@pytest.fixture
def model_registry(config_dir: Path) -> ModelRegistry:
    return load_model_registry(config_dir=config_dir)


@pytest.fixture
def fake_runner_cls() -> type[FakeRunner]:
    return FakeRunner


@pytest.fixture
def make_builder_reply():
    return builder_reply


@pytest.fixture
def make_verdict_reply():
    return verdict_reply


@pytest.fixture
def cycle_config() -> CycleConfig:
    return CycleConfig(max_retries=3, timeout_seconds=5, escalation_timeout_seconds=5)


@pytest.fixture
def sample_task() -> TaskSpec:
    return TaskSpec(
        task_id="t1",
        description="Add input validation to the signup form",
        requirements=["Reject empty emails", "Reject passwords shorter than 8 characters"],
        acceptance_criteria=["Unit tests cover both rejections"],
        validators=["syntax", "logic"],
    )
