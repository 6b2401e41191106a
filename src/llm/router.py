"""Model router for ohmyblack.

Resolves model classes, validator kinds and escalation levels to concrete
agent types and model IDs using the user-managed config/models.yaml.
"""

from __future__ import annotations

import logging
from typing import Optional

from src.core.config import AgentAssignment, ModelRegistry
from src.core.models import EscalationLevel, ModelClass

logger = logging.getLogger("ohmyblack.llm.router")


class ModelRouter:
    """Maps roles to agent types and model IDs.

    The registry is passed in explicitly so the orchestration core never
    consults global state for routing decisions.
    """

    def __init__(self, registry: Optional[ModelRegistry] = None):
        self.registry = registry or ModelRegistry()

    def get_model(self, model_class: ModelClass) -> str:
        """Resolve a model class to its configured model ID.

        Raises:
            ConfigError: If the class has no model in models.yaml.
        """
        model = self.registry.get_model(model_class)
        logger.debug("Resolved class '%s' -> model '%s'", model_class.value, model)
        return model

    def validator(self, kind: str) -> AgentAssignment:
        assignment = self.registry.get_validator(kind)
        logger.debug(
            "Validator '%s' -> agent '%s' (%s)", kind, assignment.agent, assignment.model_class.value,
        )
        return assignment

    def escalation(self, level: EscalationLevel) -> Optional[AgentAssignment]:
        """Return the agent answering an escalation level, None for human review."""
        return self.registry.get_escalation_agent(level)
