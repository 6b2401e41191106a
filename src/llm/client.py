"""OpenRouter LLM client for ohmyblack.

Async httpx client for OpenRouter's OpenAI-compatible chat completions
endpoint, with auth headers and exponential backoff on rate limits,
server errors and network failures.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Optional

import httpx

from src.core.config import LLMConfig
from src.core.exceptions import (
    AuthenticationError,
    LLMError,
    ModelNotFoundError,
    RateLimitError,
)

logger = logging.getLogger("ohmyblack.llm")


class LLMMessage:
    """A single message in a conversation."""

    def __init__(self, role: str, content: str):
        self.role = role
        self.content = content

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class LLMResponse:
    """Parsed response from the LLM."""

    def __init__(
        self,
        content: str,
        model: str,
        tokens_used: int = 0,
        raw: Optional[dict] = None,
    ):
        self.content = content
        self.model = model
        self.tokens_used = tokens_used
        self.raw = raw or {}


class OpenRouterClient:
    """Async HTTP client for OpenRouter.

    Model IDs always come from the caller (config/models.yaml); the client
    never picks one itself.
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or LLMConfig()
        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY", "")
        self.base_url = self.config.base_url.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def complete(
        self,
        messages: list[LLMMessage],
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Send a chat completion request to OpenRouter.

        Args:
            messages: Conversation messages.
            model: OpenRouter model ID (e.g., "anthropic/claude-sonnet-4").
            temperature: Sampling temperature (default from config).
            max_tokens: Max response tokens (default from config).

        Returns:
            LLMResponse with content, model, and token usage.
        """
        if not self.api_key:
            raise AuthenticationError("OPENROUTER_API_KEY not set")

        payload: dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature if temperature is not None else self.config.default_temperature,
            "max_tokens": max_tokens or self.config.default_max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "ohmyblack",
        }

        return await self._request_with_retry(
            payload,
            headers,
            max_retries=self.config.provider_retries + 1,
            backoff_base_seconds=self.config.provider_backoff_seconds,
        )

    async def _request_with_retry(
        self,
        payload: dict,
        headers: dict,
        max_retries: int = 3,
        backoff_base_seconds: float = 2.0,
    ) -> LLMResponse:
        """Execute request with exponential backoff on retryable errors."""
        last_error: Optional[str] = None
        rate_limited = False

        for attempt in range(max_retries):
            try:
                resp = await self.client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
            except (httpx.TimeoutException, httpx.TransportError) as e:
                last_error = str(e) or type(e).__name__
                delay = _backoff_delay(attempt, backoff_base_seconds)
                logger.warning("Network error: %s. Waiting %.1fs", last_error, delay)
                await asyncio.sleep(delay)
                continue

            if resp.status_code == 401:
                raise AuthenticationError("Invalid API key")
            if resp.status_code == 404:
                raise ModelNotFoundError(f"Model not found: {payload.get('model')}")
            if resp.status_code == 429 or resp.status_code >= 500:
                rate_limited = resp.status_code == 429
                last_error = f"HTTP {resp.status_code}"
                delay = _backoff_delay(attempt, backoff_base_seconds)
                logger.warning("%s from provider. Waiting %.1fs before retry %d", last_error, delay, attempt + 1)
                await asyncio.sleep(delay)
                continue
            if resp.status_code >= 400:
                raise LLMError(f"Request rejected with HTTP {resp.status_code}: {resp.text[:200]}")

            return _parse_completion(resp, payload)

        if rate_limited:
            raise RateLimitError(f"Rate limited after {max_retries} attempts")
        raise LLMError(f"Request failed after {max_retries} attempts: {last_error}")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None


def _parse_completion(resp: httpx.Response, payload: dict) -> LLMResponse:
    try:
        data = resp.json()
        content = data["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise LLMError(f"Malformed completion response: {e}") from e

    model = data.get("model", payload.get("model", "unknown"))
    tokens = data.get("usage", {}).get("total_tokens", 0)
    logger.debug("LLM response: model=%s tokens=%d", model, tokens)
    return LLMResponse(content=content or "", model=model, tokens_used=tokens, raw=data)


def _backoff_delay(attempt: int, base_seconds: float = 2.0) -> float:
    """Exponential backoff: 2s, 4s, 8s, ..."""
    return min(base_seconds * (2 ** attempt), 60)
