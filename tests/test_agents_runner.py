"""Tests for src/agents/runner.py: CLI and OpenRouter agent runners."""

import sys

import httpx
import pytest

from src.core.config import AppConfig, LLMConfig, ModelRegistry, RunnerConfig
from src.core.exceptions import ConfigError
from src.core.models import ModelClass
from src.llm.client import OpenRouterClient
from src.llm.router import ModelRouter
from src.agents.runner import (
    CLIAgentRunner,
    OpenRouterAgentRunner,
    create_runner,
)


def _python_runner(script: str) -> CLIAgentRunner:
    return CLIAgentRunner(RunnerConfig(cli_command=sys.executable, cli_args=["-c", script]))


class TestBuildCommand:
    def test_default_layout(self):
        runner = CLIAgentRunner()
        command = runner.build_command("executor", "model-x", "Do the thing")
        assert command[:4] == ["claude", "--print", "--model", "model-x"]
        assert command[4] == "You are the executor agent.\n\nDo the thing"


class TestCLIAgentRunner:
    @pytest.mark.asyncio
    async def test_success_returns_stdout(self):
        runner = _python_runner("import sys; print(sys.argv[-1])")
        result = await runner.invoke("executor", ModelClass.LOW, "hello there", 30)
        assert result.success
        assert "hello there" in result.raw_output
        assert result.agent_type == "executor"
        assert result.duration_seconds >= 0

    @pytest.mark.asyncio
    async def test_model_id_passed(self):
        runner = _python_runner("import sys; print(sys.argv[sys.argv.index('--model') + 1])")
        result = await runner.invoke("executor", ModelClass.HIGH, "p", 30)
        assert result.raw_output.strip() == ModelRegistry().model_classes[ModelClass.HIGH]

    @pytest.mark.asyncio
    async def test_non_zero_exit(self):
        runner = _python_runner("import sys; sys.stderr.write('boom'); sys.exit(3)")
        result = await runner.invoke("executor", ModelClass.LOW, "p", 30)
        assert not result.success
        assert result.error == "Exited with code 3: boom"

    @pytest.mark.asyncio
    async def test_empty_output(self):
        result = await _python_runner("pass").invoke("executor", ModelClass.LOW, "p", 30)
        assert not result.success
        assert result.error == "Agent produced no output"

    @pytest.mark.asyncio
    async def test_timeout(self):
        runner = _python_runner("import time; time.sleep(10)")
        result = await runner.invoke("validator-logic", ModelClass.LOW, "p", 0.5)
        assert not result.success
        assert "timeout after 0.5s" in result.error

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        runner = CLIAgentRunner(RunnerConfig(cli_command="ohmyblack-no-such-binary", cli_args=[]))
        result = await runner.invoke("executor", ModelClass.LOW, "p", 5)
        assert not result.success
        assert "Failed to launch" in result.error

    @pytest.mark.asyncio
    async def test_unconfigured_model_class(self):
        runner = CLIAgentRunner(router=ModelRouter(ModelRegistry(model_classes={})))
        result = await runner.invoke("executor", ModelClass.LOW, "p", 5)
        assert not result.success
        assert "No model configured" in result.error


class TestOpenRouterAgentRunner:
    def _runner(self, handler) -> OpenRouterAgentRunner:
        client = OpenRouterClient(
            LLMConfig(provider_retries=0, provider_backoff_seconds=0),
            api_key="k",
            transport=httpx.MockTransport(handler),
        )
        return OpenRouterAgentRunner(client)

    @pytest.mark.asyncio
    async def test_success(self):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {"content": "VERDICT: APPROVED"}}]})

        result = await self._runner(handler).invoke("validator-syntax", ModelClass.LOW, "p", 10)
        assert result.success
        assert result.raw_output == "VERDICT: APPROVED"

    @pytest.mark.asyncio
    async def test_provider_error_becomes_failure(self):
        result = await self._runner(lambda r: httpx.Response(401)).invoke("executor", ModelClass.LOW, "p", 10)
        assert not result.success
        assert "Invalid API key" in result.error

    @pytest.mark.asyncio
    async def test_close_releases_http_client(self):
        runner = self._runner(
            lambda r: httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})
        )
        await runner.invoke("executor", ModelClass.LOW, "p", 10)
        http_client = runner.client.client

        await runner.close()

        assert http_client.is_closed
        assert runner.client._client is None

    @pytest.mark.asyncio
    async def test_cli_runner_close_is_noop(self):
        await CLIAgentRunner().close()


class TestCreateRunner:
    def test_cli(self):
        assert isinstance(create_runner(AppConfig()), CLIAgentRunner)

    def test_openrouter(self):
        config = AppConfig(runner=RunnerConfig(backend="openrouter"))
        assert isinstance(create_runner(config), OpenRouterAgentRunner)

    def test_unknown_backend(self):
        with pytest.raises(ConfigError):
            create_runner(AppConfig(runner=RunnerConfig(backend="carrier-pigeon")))
