"""Tests for LLM providers over mocked HTTP transports."""

from __future__ import annotations

import json

import httpx
import pytest

from quill.providers import (
    AnthropicProvider,
    GeminiProvider,
    LLMError,
    LLMProvider,
    OllamaProvider,
    OpenAICompatProvider,
    get_provider,
)
from quill.providers.secrets import get_api_key, list_configured_providers


class TestOllamaProvider:
    def test_chat_json_uses_json_mode(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/chat"
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"message": {"role": "assistant", "content": ' {"ok": true} '}})

        provider = OllamaProvider(url="http://ollama.test", model="llama3", transport=httpx.MockTransport(handler))
        out = provider.chat_json(system="sys", user="hi", temperature=0.3)

        assert out == '{"ok": true}'
        payload = seen[0]
        assert payload["format"] == "json"
        assert payload["model"] == "llama3"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.3}
        assert [m["role"] for m in payload["messages"]] == ["system", "user"]

    def test_default_model_prefers_known_families(self) -> None:
        models: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/tags":
                return httpx.Response(200, json={"models": [{"name": "mistral:7b"}, {"name": "qwen2.5:7b"}]})
            models.append(json.loads(request.content)["model"])
            return httpx.Response(200, json={"message": {"content": "hello"}})

        provider = OllamaProvider(url="http://ollama.test", transport=httpx.MockTransport(handler))
        assert provider.chat_text(system="s", user="u") == "hello"
        assert models == ["qwen2.5:7b"]

    def test_http_error_raises_llm_error(self) -> None:
        provider = OllamaProvider(
            url="http://ollama.test",
            model="llama3",
            transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom")),
        )
        with pytest.raises(LLMError):
            provider.chat_text(system="s", user="u")

    def test_missing_content_raises_llm_error(self) -> None:
        provider = OllamaProvider(
            url="http://ollama.test",
            model="llama3",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"done": True})),
        )
        with pytest.raises(LLMError):
            provider.chat_text(system="s", user="u")

    def test_health_when_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        health = OllamaProvider(url="http://ollama.test", transport=httpx.MockTransport(handler)).check_health()
        assert not health.reachable
        assert "connection refused" in (health.error or "")


class TestOpenAICompatProvider:
    def test_chat_json(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"choices": [{"message": {"content": '{"a": 1}'}}]})

        provider = OpenAICompatProvider(
            api_key="sk-test",
            base_url="https://api.test/v1",
            transport=httpx.MockTransport(handler),
        )
        assert provider.chat_json(system="sys", user="u") == '{"a": 1}'

        request = seen[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["model"] == "gpt-4o-mini"
        assert body["response_format"] == {"type": "json_object"}
        assert body["messages"][0]["content"].startswith("sys")

    def test_openrouter_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}]})

        provider = OpenAICompatProvider(name="openrouter", api_key="k", transport=httpx.MockTransport(handler))
        assert provider.chat_text(system="s", user="u") == "hi"
        assert seen[0].headers["X-Title"] == "Quill"
        assert "response_format" not in json.loads(seen[0].content)

    def test_missing_key_raises(self) -> None:
        provider = OpenAICompatProvider(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        with pytest.raises(LLMError):
            provider.chat_text(system="s", user="u")

    def test_unexpected_response(self) -> None:
        provider = OpenAICompatProvider(
            api_key="k",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"choices": []})),
        )
        with pytest.raises(LLMError):
            provider.chat_text(system="s", user="u")

    def test_unknown_name(self) -> None:
        with pytest.raises(ValueError):
            OpenAICompatProvider(name="nope")


class TestGeminiProvider:
    def test_generate_content(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": '{"x": '}, {"text": "1}"}]}}]},
            )

        provider = GeminiProvider(api_key="g-key", transport=httpx.MockTransport(handler))
        assert provider.chat_json(system="s", user="u", temperature=0.2) == '{"x": 1}'

        request = seen[0]
        assert request.url.path.endswith("/models/gemini-2.0-flash:generateContent")
        assert request.url.params["key"] == "g-key"
        body = json.loads(request.content)
        assert body["generationConfig"] == {"temperature": 0.2, "responseMimeType": "application/json"}
        assert body["systemInstruction"]["parts"][0]["text"] == "s"

    def test_missing_key_raises(self) -> None:
        with pytest.raises(LLMError):
            GeminiProvider().chat_text(system="s", user="u")


class TestGetProvider:
    def test_configured_default_is_ollama(self) -> None:
        provider = get_provider()
        assert isinstance(provider, OllamaProvider)
        assert isinstance(provider, LLMProvider)

    def test_named_providers(self) -> None:
        assert get_provider("openrouter").provider_type == "openrouter"
        assert get_provider("google").provider_type == "google"
        assert isinstance(get_provider("anthropic"), AnthropicProvider)

    def test_unknown_provider(self) -> None:
        with pytest.raises(LLMError):
            get_provider("carrier-pigeon")


class TestSecrets:
    def test_environment_variable_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert get_api_key("openai") == "sk-env"
        assert "openai" in list_configured_providers()

    def test_missing_key(self) -> None:
        assert get_api_key("anthropic") is None
        assert list_configured_providers() == []
