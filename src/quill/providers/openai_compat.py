"""OpenAI-compatible chat completions (OpenAI, OpenRouter, Kilo).

All three speak the same /chat/completions wire format; only the base URL,
the key and a couple of headers differ.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from quill.config import get_config

from .base import JSON_ONLY_SUFFIX, LLMError, ModelInfo, ProviderHealth
from .secrets import get_api_key

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "openrouter": "openai/gpt-4o-mini",
    "kilo": "openai/gpt-4o-mini",
}


class OpenAICompatProvider:
    """Chat completions over httpx for OpenAI-style endpoints."""

    def __init__(
        self,
        *,
        name: str = "openai",
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if name not in DEFAULT_MODELS:
            raise ValueError(f"Unknown OpenAI-compatible provider: {name}")
        config = get_config().llm
        self._name = name
        self._api_key = api_key
        self._model = model or DEFAULT_MODELS[name]
        self._base_url = (base_url or getattr(config, f"{name}_base_url")).rstrip("/")
        self._transport = transport

    @property
    def provider_type(self) -> str:
        return self._name

    def chat_text(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        payload = self._build_payload(system, user, temperature, top_p)
        return self._post(payload, timeout_seconds)

    def chat_json(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        payload = self._build_payload(system + JSON_ONLY_SUFFIX, user, temperature, top_p)
        if self._name == "openai":
            payload["response_format"] = {"type": "json_object"}
        return self._post(payload, timeout_seconds)

    def list_models(self) -> list[ModelInfo]:
        return [ModelInfo(name=self._model)]

    def check_health(self) -> ProviderHealth:
        api_key = self._resolve_key(required=False)
        if not api_key:
            return ProviderHealth(reachable=False, error="No API key configured")
        try:
            with httpx.Client(timeout=5.0, transport=self._transport) as client:
                res = client.get(f"{self._base_url}/models", headers=self._headers(api_key))
                res.raise_for_status()
                count = len(res.json().get("data", []))
        except (httpx.HTTPError, ValueError) as e:
            return ProviderHealth(reachable=False, error=str(e))
        return ProviderHealth(reachable=True, model_count=count, current_model=self._model)

    def _resolve_key(self, *, required: bool = True) -> str | None:
        if not self._api_key:
            self._api_key = get_api_key(self._name)
        if required and not self._api_key:
            raise LLMError(f"No {self._name} API key configured.")
        return self._api_key

    def _headers(self, api_key: str) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {api_key}"}
        if self._name == "openrouter":
            headers["X-Title"] = "Quill"
        return headers

    def _build_payload(
        self,
        system: str,
        user: str,
        temperature: float | None,
        top_p: float | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        if temperature is not None:
            payload["temperature"] = float(temperature)
        if top_p is not None:
            payload["top_p"] = float(top_p)
        return payload

    def _post(self, payload: dict[str, Any], timeout_seconds: float) -> str:
        api_key = self._resolve_key()
        assert api_key is not None
        try:
            with httpx.Client(timeout=timeout_seconds, transport=self._transport) as client:
                res = client.post(
                    f"{self._base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(api_key),
                )
                res.raise_for_status()
                data = res.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LLMError(f"{self._name} request failed: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Unexpected {self._name} response: {e}") from e
        if not isinstance(content, str):
            raise LLMError(f"Unexpected {self._name} response: missing content")
        return content.strip()
