"""LLM providers and the factory that picks one from configuration."""

from __future__ import annotations

import logging

from quill.config import get_config

from .anthropic import AnthropicProvider
from .base import LLMError, LLMProvider, ModelInfo, ProviderHealth
from .gemini import GeminiProvider
from .ollama import OllamaProvider
from .openai_compat import OpenAICompatProvider

logger = logging.getLogger(__name__)

PROVIDER_NAMES = ("ollama", "anthropic", "openai", "openrouter", "kilo", "google")


def get_provider(name: str | None = None, *, model: str | None = None) -> LLMProvider:
    """Build the configured (or named) provider.

    Raises:
        LLMError: unknown provider name.
    """
    config = get_config().llm
    name = (name or config.provider).lower()
    model = model or config.model

    if name == "ollama":
        return OllamaProvider(model=model)
    if name == "anthropic":
        return AnthropicProvider(model=model)
    if name in ("openai", "openrouter", "kilo"):
        return OpenAICompatProvider(name=name, model=model)
    if name in ("google", "gemini"):
        return GeminiProvider(model=model)
    raise LLMError(f"Unknown LLM provider: {name}. Expected one of {', '.join(PROVIDER_NAMES)}")


__all__ = [
    "AnthropicProvider",
    "GeminiProvider",
    "LLMError",
    "LLMProvider",
    "ModelInfo",
    "OllamaProvider",
    "OpenAICompatProvider",
    "PROVIDER_NAMES",
    "ProviderHealth",
    "get_provider",
]
