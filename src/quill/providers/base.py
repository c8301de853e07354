"""LLM provider protocol and shared types.

Every backend (Ollama, Anthropic, OpenAI-compatible, Gemini) implements
LLMProvider so pipelines never import a vendor SDK directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from quill.errors import QuillError


class LLMError(QuillError):
    """An LLM request failed (network, auth, or an unexpected response)."""


@dataclass(frozen=True)
class ModelInfo:
    name: str
    size_gb: float | None = None
    context_length: int | None = None
    capabilities: list[str] = field(default_factory=list)
    description: str | None = None


@dataclass(frozen=True)
class ProviderHealth:
    reachable: bool
    model_count: int | None = None
    current_model: str | None = None
    error: str | None = None


@runtime_checkable
class LLMProvider(Protocol):
    """Minimal chat interface used by the pipelines."""

    @property
    def provider_type(self) -> str: ...

    def chat_text(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str: ...

    def chat_json(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str: ...

    def list_models(self) -> list[ModelInfo]: ...

    def check_health(self) -> ProviderHealth: ...


JSON_ONLY_SUFFIX = (
    "\n\nIMPORTANT: Respond ONLY with valid JSON. No markdown, no explanation, just the JSON object."
)
