"""Google Gemini via the Generative Language REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from quill.config import get_config

from .base import LLMError, ModelInfo, ProviderHealth
from .secrets import get_api_key

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"


class GeminiProvider:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model or DEFAULT_MODEL
        self._base_url = (base_url or get_config().llm.gemini_base_url).rstrip("/")
        self._transport = transport

    @property
    def provider_type(self) -> str:
        return "google"

    def chat_text(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        return self._generate(system, user, timeout_seconds, temperature, top_p, json_mode=False)

    def chat_json(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        return self._generate(system, user, timeout_seconds, temperature, top_p, json_mode=True)

    def list_models(self) -> list[ModelInfo]:
        return [ModelInfo(name=self._model, context_length=1_000_000)]

    def check_health(self) -> ProviderHealth:
        api_key = self._api_key or get_api_key("google")
        if not api_key:
            return ProviderHealth(reachable=False, error="No API key configured")
        try:
            with httpx.Client(timeout=5.0, transport=self._transport) as client:
                res = client.get(f"{self._base_url}/models", params={"key": api_key})
                res.raise_for_status()
                count = len(res.json().get("models", []))
        except (httpx.HTTPError, ValueError) as e:
            return ProviderHealth(reachable=False, error=str(e))
        return ProviderHealth(reachable=True, model_count=count, current_model=self._model)

    def _generate(
        self,
        system: str,
        user: str,
        timeout_seconds: float,
        temperature: float | None,
        top_p: float | None,
        *,
        json_mode: bool,
    ) -> str:
        api_key = self._api_key or get_api_key("google")
        if not api_key:
            raise LLMError("No Google API key configured. Set GOOGLE_GENERATIVE_AI_API_KEY.")

        generation_config: dict[str, Any] = {}
        if temperature is not None:
            generation_config["temperature"] = float(temperature)
        if top_p is not None:
            generation_config["topP"] = float(top_p)
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        payload = {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": user}]}],
            "generationConfig": generation_config,
        }
        url = f"{self._base_url}/models/{self._model}:generateContent"
        try:
            with httpx.Client(timeout=timeout_seconds, transport=self._transport) as client:
                res = client.post(url, params={"key": api_key}, json=payload)
                res.raise_for_status()
                data = res.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LLMError(f"Gemini request failed: {e}") from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Unexpected Gemini response: {e}") from e
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text:
            raise LLMError("Unexpected Gemini response: no text content")
        return text.strip()
