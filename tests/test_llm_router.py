"""Tests for src/llm/router.py: role to agent/model resolution."""

import pytest

from src.core.config import ModelRegistry
from src.core.exceptions import ConfigError
from src.core.models import EscalationLevel, ModelClass
from src.llm.router import ModelRouter


class TestModelRouter:
    def test_get_model(self, model_registry):
        router = ModelRouter(model_registry)
        assert router.get_model(ModelClass.LOW) == model_registry.model_classes[ModelClass.LOW]

    def test_default_registry(self):
        router = ModelRouter()
        assert router.validator("logic").agent == "validator-logic"

    def test_missing_class_raises(self):
        router = ModelRouter(ModelRegistry(model_classes={}))
        with pytest.raises(ConfigError):
            router.get_model(ModelClass.MEDIUM)

    def test_validator_assignment(self, model_registry):
        assignment = ModelRouter(model_registry).validator("security")
        assert assignment.agent == "validator-security"
        assert assignment.model_class == ModelClass.HIGH

    def test_escalation(self, model_registry):
        router = ModelRouter(model_registry)
        assert router.escalation(EscalationLevel.COORDINATOR).agent == "coordinator"
        assert router.escalation(EscalationLevel.HUMAN) is None
