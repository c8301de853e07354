"""Anthropic Provider - Claude API integration.

Implements LLMProvider for Anthropic's Claude models. The API key comes from
the caller, ANTHROPIC_API_KEY, or the system keyring.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .base import JSON_ONLY_SUFFIX, LLMError, ModelInfo, ProviderHealth
from .secrets import get_api_key

if TYPE_CHECKING:
    from anthropic import Anthropic

logger = logging.getLogger(__name__)


CLAUDE_MODELS: list[ModelInfo] = [
    ModelInfo(
        name="claude-sonnet-4-20250514",
        context_length=200000,
        capabilities=["tools", "vision"],
        description="Fast, cost-effective model for most tasks",
    ),
    ModelInfo(
        name="claude-3-5-haiku-20241022",
        context_length=200000,
        capabilities=["tools"],
        description="Fastest, most economical model",
    ),
]

DEFAULT_MODEL = "claude-sonnet-4-20250514"
MAX_TOKENS = 4096


class AnthropicProvider:
    """LLM Provider implementation for Anthropic Claude.

    Example:
        provider = AnthropicProvider(api_key="sk-ant-...")
        response = provider.chat_text(system="You are helpful.", user="Hello!")
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model or DEFAULT_MODEL
        self._client: Anthropic | None = None

    @property
    def provider_type(self) -> str:
        return "anthropic"

    def chat_text(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        client = self._get_client()

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": MAX_TOKENS,
            "system": system,
            "messages": [{"role": "user", "content": user}],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if top_p is not None:
            kwargs["top_p"] = top_p

        try:
            response = client.with_options(timeout=timeout_seconds).messages.create(**kwargs)
        except Exception as e:
            raise LLMError(f"Anthropic API error: {e}") from e

        for block in response.content or []:
            text = getattr(block, "text", None)
            if isinstance(text, str):
                return text.strip()
        raise LLMError("Unexpected Anthropic response: no text content")

    def chat_json(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        """Generate a JSON response.

        Claude has no native JSON mode; the system prompt asks for it and
        callers run the result through json_repair.
        """
        return self.chat_text(
            system=system + JSON_ONLY_SUFFIX,
            user=user,
            timeout_seconds=timeout_seconds,
            temperature=temperature,
            top_p=top_p,
        )

    def list_models(self) -> list[ModelInfo]:
        return CLAUDE_MODELS.copy()

    def check_health(self) -> ProviderHealth:
        if not (self._api_key or get_api_key("anthropic")):
            return ProviderHealth(reachable=False, error="No API key configured")
        try:
            self.chat_text(system="Reply with OK.", user="hi", timeout_seconds=5.0)
        except LLMError as e:
            error_msg = str(e)
            if "authentication" in error_msg.lower() or "api key" in error_msg.lower():
                error_msg = "Invalid API key"
            return ProviderHealth(reachable=False, error=error_msg)
        return ProviderHealth(
            reachable=True,
            model_count=len(CLAUDE_MODELS),
            current_model=self._model,
        )

    def _get_client(self) -> "Anthropic":
        if self._client is not None:
            return self._client

        if not self._api_key:
            self._api_key = get_api_key("anthropic")
        if not self._api_key:
            raise LLMError("No Anthropic API key configured. Set ANTHROPIC_API_KEY.")

        from anthropic import Anthropic

        self._client = Anthropic(api_key=self._api_key)
        return self._client
