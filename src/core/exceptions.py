"""Custom exception hierarchy for ohmyblack.

All exceptions inherit from OhmyblackError so callers can catch broadly
or narrowly as needed. Expected validation outcomes (rejections, parse
failures, escalations) are returned as data, not raised.
"""


class OhmyblackError(Exception):
    """Base exception for all ohmyblack errors."""


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------

class LLMError(OhmyblackError):
    """Failed LLM operation."""


class RateLimitError(LLMError):
    """Hit API rate limit."""


class AuthenticationError(LLMError):
    """Invalid API key or unauthorized."""


class ModelNotFoundError(LLMError):
    """Requested model not available."""


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------

class AgentError(OhmyblackError):
    """Agent processing failure."""


class AgentInvocationError(AgentError):
    """The agent runner could not deliver a result (transport failure)."""

    def __init__(self, agent_type: str, message: str):
        self.agent_type = agent_type
        super().__init__(f"Agent '{agent_type}' invocation failed: {message}")


class AgentTimeoutError(AgentInvocationError):
    """The agent did not answer within its timeout."""

    def __init__(self, agent_type: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(agent_type, f"timeout after {timeout_seconds:g}s")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigError(OhmyblackError):
    """Invalid or missing configuration."""
