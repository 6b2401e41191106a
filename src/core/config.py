"""Configuration loader for ohmyblack.

Loads config from a YAML cascade: config/default.yaml is always loaded,
then environment-specific overrides, then environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from src.core.exceptions import ConfigError
from src.core.models import EscalationLevel, ModelClass, ValidationType


# ---------------------------------------------------------------------------
# Config schema
# ---------------------------------------------------------------------------

class CycleConfig(BaseModel):
    max_retries: int = Field(default=3, ge=0)
    timeout_seconds: float = Field(default=120.0, gt=0)
    escalation_timeout_seconds: float = Field(default=180.0, gt=0)
    default_validation_type: ValidationType = ValidationType.VALIDATOR
    execute_escalation: bool = True


class RunnerConfig(BaseModel):
    backend: str = "cli"  # "cli" or "openrouter"
    cli_command: str = "claude"
    cli_args: list[str] = Field(default_factory=lambda: ["--print"])


class LLMConfig(BaseModel):
    provider: str = "openrouter"
    base_url: str = "https://openrouter.ai/api/v1"
    default_temperature: float = 0.2
    default_max_tokens: int = 4096
    timeout_seconds: int = 120
    provider_retries: int = 2
    provider_backoff_seconds: float = 2.0


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AppConfig(BaseModel):
    cycle: CycleConfig = Field(default_factory=CycleConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ---------------------------------------------------------------------------
# Model registry (models.yaml)
# ---------------------------------------------------------------------------

class AgentAssignment(BaseModel):
    """Which agent persona answers a role, and on which model class."""
    agent: str
    model_class: ModelClass = ModelClass.MEDIUM


def _default_model_classes() -> dict[ModelClass, str]:
    return {
        ModelClass.LOW: "claude-3-5-haiku-latest",
        ModelClass.MEDIUM: "claude-sonnet-4-20250514",
        ModelClass.HIGH: "claude-opus-4-5-20251101",
    }


def _default_validators() -> dict[str, AgentAssignment]:
    return {
        "syntax": AgentAssignment(agent="validator-syntax", model_class=ModelClass.LOW),
        "logic": AgentAssignment(agent="validator-logic", model_class=ModelClass.MEDIUM),
        "security": AgentAssignment(agent="validator-security", model_class=ModelClass.HIGH),
        "integration": AgentAssignment(agent="validator-integration", model_class=ModelClass.MEDIUM),
    }


def _default_escalation() -> dict[EscalationLevel, AgentAssignment]:
    return {
        EscalationLevel.ARCHITECT: AgentAssignment(agent="architect", model_class=ModelClass.HIGH),
        EscalationLevel.COORDINATOR: AgentAssignment(agent="coordinator", model_class=ModelClass.MEDIUM),
    }


class ModelRegistry(BaseModel):
    """Maps model classes to model IDs and roles to agent assignments."""
    model_classes: dict[ModelClass, str] = Field(default_factory=_default_model_classes)
    validators: dict[str, AgentAssignment] = Field(default_factory=_default_validators)
    escalation: dict[EscalationLevel, AgentAssignment] = Field(default_factory=_default_escalation)

    def get_model(self, model_class: ModelClass) -> str:
        if model_class not in self.model_classes:
            raise ConfigError(
                f"No model configured for class '{model_class.value}'. Update config/models.yaml."
            )
        return self.model_classes[model_class]

    def get_validator(self, kind: str) -> AgentAssignment:
        """Resolve a validator kind; unknown kinds get a generic medium-tier agent."""
        assignment = self.validators.get(kind)
        if assignment is None:
            return AgentAssignment(agent=f"validator-{kind}", model_class=ModelClass.MEDIUM)
        return assignment

    def get_escalation_agent(self, level: EscalationLevel) -> Optional[AgentAssignment]:
        """Return the agent for an escalation level, or None if it never auto-invokes."""
        if level == EscalationLevel.HUMAN:
            return None
        return self.escalation.get(level)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_ENV_OVERRIDES: tuple[tuple[str, str, str], ...] = (
    ("OHMYBLACK_RUNNER", "runner", "backend"),
    ("OHMYBLACK_MAX_RETRIES", "cycle", "max_retries"),
    ("OHMYBLACK_TIMEOUT_SECONDS", "cycle", "timeout_seconds"),
)


def _default_config_dir() -> Path:
    return Path(__file__).parent.parent.parent / "config"


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML in {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def load_config(
    config_dir: Optional[Path] = None,
    env: Optional[str] = None,
) -> AppConfig:
    """Load application config from YAML cascade.

    Order: default.yaml -> {env}.yaml -> env vars (OHMYBLACK_*).
    """
    if config_dir is None:
        config_dir = _default_config_dir()

    merged = _load_yaml(config_dir / "default.yaml")

    if env:
        overlay = _load_yaml(config_dir / f"{env}.yaml")
        merged = _deep_merge(merged, overlay)

    for var, section, key in _ENV_OVERRIDES:
        value = os.getenv(var)
        if value:
            merged.setdefault(section, {})
            merged[section][key] = value

    try:
        return AppConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_model_registry(config_dir: Optional[Path] = None) -> ModelRegistry:
    """Load the model registry from models.yaml."""
    if config_dir is None:
        config_dir = _default_config_dir()

    data = _load_yaml(config_dir / "models.yaml")
    try:
        return ModelRegistry(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid model registry: {e}") from e
