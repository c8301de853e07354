"""Ollama Provider - Local LLM inference via Ollama."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from quill.config import get_config

from .base import LLMError, ModelInfo, ProviderHealth

logger = logging.getLogger(__name__)

PREFERRED_MODEL_PATTERNS = ["qwen", "llama3", "mistral", "gemma", "phi"]


class OllamaProvider:
    """LLM Provider implementation for Ollama.

    Example:
        provider = OllamaProvider(url="http://localhost:11434", model="llama3.2:3b")
        response = provider.chat_text(system="You are helpful.", user="Hello!")
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        model: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        config = get_config().llm
        self._url = (url or config.ollama_url).rstrip("/")
        self._model = model or config.model
        self._transport = transport

    @property
    def provider_type(self) -> str:
        return "ollama"

    def chat_text(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        payload = self._build_payload(system=system, user=user, temperature=temperature, top_p=top_p)
        return self._post_chat(payload, timeout_seconds)

    def chat_json(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        """Generate a JSON-formatted response using Ollama's JSON mode."""
        payload = self._build_payload(system=system, user=user, temperature=temperature, top_p=top_p)
        payload["format"] = "json"
        return self._post_chat(payload, timeout_seconds)

    def list_models(self) -> list[ModelInfo]:
        try:
            with self._client(5.0) as client:
                res = client.get(f"{self._url}/api/tags")
                res.raise_for_status()
                data = res.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to list Ollama models: %s", e)
            return []

        models = []
        for m in data.get("models", []):
            if isinstance(m, dict) and isinstance(m.get("name"), str):
                details = m.get("details") or {}
                size_bytes = m.get("size") or 0
                models.append(
                    ModelInfo(
                        name=m["name"],
                        size_gb=round(size_bytes / (1024**3), 1) if size_bytes else None,
                        context_length=details.get("context_length"),
                        description=details.get("family"),
                    )
                )
        return models

    def check_health(self) -> ProviderHealth:
        try:
            with self._client(2.0) as client:
                res = client.get(f"{self._url}/api/tags")
                res.raise_for_status()
                models = res.json().get("models", [])
        except (httpx.HTTPError, ValueError) as e:
            return ProviderHealth(reachable=False, error=str(e))
        return ProviderHealth(reachable=True, model_count=len(models), current_model=self._model)

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _client(self, timeout: float) -> httpx.Client:
        return httpx.Client(timeout=timeout, transport=self._transport)

    def _build_payload(
        self,
        *,
        system: str,
        user: str,
        temperature: float | None,
        top_p: float | None,
    ) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = float(temperature)
        if top_p is not None:
            options["top_p"] = float(top_p)

        return {
            "model": self._model or self._get_default_model(),
            "stream": False,
            "options": options,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }

    def _post_chat(self, payload: dict[str, Any], timeout_seconds: float) -> str:
        try:
            with self._client(timeout_seconds) as client:
                res = client.post(f"{self._url}/api/chat", json=payload)
                res.raise_for_status()
                data = res.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LLMError(f"Ollama request failed: {e}") from e

        message = data.get("message")
        if not isinstance(message, dict) or not isinstance(message.get("content"), str):
            raise LLMError("Unexpected Ollama response: missing message content")
        return message["content"].strip()

    def _get_default_model(self) -> str:
        models = self.list_models()
        names = [m.name for m in models]
        for pattern in PREFERRED_MODEL_PATTERNS:
            for name in names:
                if pattern in name.lower():
                    logger.info("Auto-selected model: %s (preferred pattern: %s)", name, pattern)
                    self._model = name
                    return name
        if names:
            logger.info("Auto-selected first available model: %s", names[0])
            self._model = names[0]
            return names[0]
        raise LLMError("No Ollama model configured. Set QUILL_LLM_MODEL or pull a model.")
