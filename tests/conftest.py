from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from quill.blocks import Block, heading, paragraph
from quill.config import Config
from quill.db import Database
from quill.providers.base import LLMError, ModelInfo, ProviderHealth
from quill.search import SearchResult

_KEY_ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "OPENROUTER_API_KEY",
    "KILO_API_KEY",
    "GOOGLE_GENERATIVE_AI_API_KEY",
    "TAVILY_API_KEY",
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Config]:
    """Keep tests away from the user's config, data dir, env keys and keyring."""

    import quill.config as config_mod
    import quill.errors as errors_mod

    for var in _KEY_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("quill.providers.secrets.keyring.get_password", lambda service, name: None)

    config = Config()
    config.storage.data_dir = tmp_path / "data"
    monkeypatch.setattr(config_mod, "_config", config)
    monkeypatch.setattr(errors_mod, "_RECENT_SIGNATURES", {})
    yield config


@pytest.fixture(autouse=True)
def isolated_db_singleton(tmp_path: Path) -> Iterator[Path]:
    """Swap the global DB singleton in `quill.db` for a temp file DB."""

    import quill.db as db_mod

    db_path = tmp_path / "quill-test.db"
    db_mod._db_instance = db_mod.Database(db_path=db_path)
    db_mod._db_instance.migrate()
    try:
        yield db_path
    finally:
        if db_mod._db_instance is not None:
            db_mod._db_instance.close()
        db_mod._db_instance = None


@pytest.fixture
def temp_db(tmp_path: Path) -> Iterator[Database]:
    db = Database(db_path=tmp_path / "versions.db")
    db.migrate()
    yield db
    db.close()


class FakeProvider:
    """Scripted LLMProvider.

    Each chat call pops the next scripted response: dicts are JSON-encoded,
    exceptions are raised, strings are returned as-is.
    """

    def __init__(self, json_responses: list[Any] | None = None, text_responses: list[Any] | None = None) -> None:
        self.json_responses = list(json_responses or [])
        self.text_responses = list(text_responses or [])
        self.calls: list[dict[str, Any]] = []

    @property
    def provider_type(self) -> str:
        return "fake"

    def _next(self, queue: list[Any]) -> str:
        if not queue:
            raise LLMError("No scripted response left")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, dict):
            return json.dumps(item, ensure_ascii=False)
        return str(item)

    def chat_text(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        self.calls.append({"kind": "text", "system": system, "user": user, "temperature": temperature})
        return self._next(self.text_responses)

    def chat_json(
        self,
        *,
        system: str,
        user: str,
        timeout_seconds: float = 60.0,
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> str:
        self.calls.append({"kind": "json", "system": system, "user": user, "temperature": temperature})
        return self._next(self.json_responses)

    def list_models(self) -> list[ModelInfo]:
        return [ModelInfo(name="fake-model")]

    def check_health(self) -> ProviderHealth:
        return ProviderHealth(reachable=True, model_count=1, current_model="fake-model")


class StubSearchClient:
    """SearchClient returning canned results and recording queries."""

    def __init__(self, results: list[SearchResult] | None = None) -> None:
        self.results = list(results or [])
        self.queries: list[str] = []

    def search(self, query: str, *, max_results: int = 5) -> list[SearchResult]:
        self.queries.append(query)
        return self.results[:max_results]


@pytest.fixture
def fake_llm() -> Callable[..., FakeProvider]:
    return FakeProvider


@pytest.fixture
def stub_search() -> Callable[..., StubSearchClient]:
    return StubSearchClient


@pytest.fixture
def sample_blocks() -> list[Block]:
    """A small post: H1, two H2 sections, one H3 under the second."""

    return [
        heading("Python Guide", 1),
        paragraph("Python is a popular programming language."),
        heading("Installation"),
        paragraph("Download the installer from the official website."),
        paragraph("Run the installer and follow the prompts."),
        heading("Basic Syntax"),
        paragraph("Python uses indentation to define blocks."),
        heading("Variables", 3),
        paragraph("Variables do not need type declarations."),
    ]
