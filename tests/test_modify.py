"""Tests for the plan -> retrieve -> generate modification pipeline."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from quill.blocks import Block
from quill.errors import ValidationError
from quill.modify import ModificationPlan, ModifyPipeline, ModifyRequest, needs_rich_content
from quill.providers.base import LLMError
from quill.search import SearchResult

PLAN = {
    "thought_process": "Expand the installation section",
    "target_sections": ["Installation"],
    "needs_search": False,
    "search_queries": [],
    "action_type": "expand",
}

GENERATED = {
    "modifications": [{"type": "append", "content": "Use a virtual environment."}],
    "explanation": "Added a tip about virtual environments.",
}


def _request(blocks: list[Block], instruction: str = "expand the installation section", **kwargs: Any) -> ModifyRequest:
    return ModifyRequest(post_id="post-1", instruction=instruction, title="Python Guide", content=blocks, **kwargs)


class TestValidation:
    def test_missing_post_id(self) -> None:
        with pytest.raises(ValidationError):
            ModifyPipeline(None).run(ModifyRequest(post_id="", instruction="expand everything"))

    def test_short_instruction(self) -> None:
        with pytest.raises(ValidationError, match="too short"):
            ModifyPipeline(None).run(ModifyRequest(post_id="p", instruction=" hi  "))


class TestPlan:
    def test_from_dict_normalizes_action(self) -> None:
        plan = ModificationPlan.from_dict({"action_type": "dance", "target_sections": ["A", ""], "needs_search": 1})
        assert plan.action_type == "other"
        assert plan.target_sections == ["A"]
        assert plan.needs_search is True

    def test_planning_failure_gives_neutral_plan(self, fake_llm: Callable[..., Any]) -> None:
        pipeline = ModifyPipeline(fake_llm(json_responses=[LLMError("down")]))
        plan = pipeline.plan("expand it", "structure")
        assert plan == ModificationPlan()
        assert plan.thought_process == "Fallback to direct generation"

    def test_from_dict_ignores_non_list_fields(self) -> None:
        plan = ModificationPlan.from_dict({"target_sections": 3, "search_queries": 5, "needs_search": True})
        assert plan.target_sections == []
        assert plan.search_queries == []

    def test_from_dict_wraps_bare_string(self) -> None:
        plan = ModificationPlan.from_dict({"target_sections": "Installation", "search_queries": " latest AI "})
        assert plan.target_sections == ["Installation"]
        assert plan.search_queries == ["latest AI"]

    def test_generate_without_provider_raises(self, sample_blocks: list[Block]) -> None:
        with pytest.raises(LLMError, match="No LLM provider"):
            ModifyPipeline(None).generate(
                _request(sample_blocks), "expand it", "en", "structure", ModificationPlan(), "", False
            )


class TestRun:
    def test_full_pipeline(self, fake_llm: Callable[..., Any], sample_blocks: list[Block]) -> None:
        provider = fake_llm(json_responses=[PLAN, GENERATED])

        result = ModifyPipeline(provider).run(_request(sample_blocks))

        assert [m.to_dict() for m in result.modifications] == [
            {"type": "append", "content": "Use a virtual environment."}
        ]
        assert result.explanation == "Added a tip about virtual environments."
        assert result.plan is not None and result.plan.action_type == "expand"
        assert not result.used_fallback
        assert not result.search_performed

        planning, generation = provider.calls
        assert "Section 2: Installation" in planning["system"]
        assert "Python Guide (Level 1)" in planning["system"]
        assert "Download the installer" in generation["user"]
        assert "(No search results)" in generation["system"]
        assert generation["temperature"] == 0.7

    def test_search_results_reach_generation(
        self,
        fake_llm: Callable[..., Any],
        stub_search: Callable[..., Any],
        sample_blocks: list[Block],
    ) -> None:
        plan = dict(PLAN, needs_search=True, search_queries=["python 3.13 installer", "pip"])
        provider = fake_llm(json_responses=[plan, GENERATED])
        search = stub_search([SearchResult("Python 3.13", "https://python.org/downloads", "New installer")])

        result = ModifyPipeline(provider, search).run(_request(sample_blocks, "add the latest installer details"))

        assert result.search_performed
        assert search.queries == ["python 3.13 installer", "pip"]
        assert "https://python.org/downloads" in provider.calls[1]["system"]

    def test_malformed_search_queries(
        self,
        fake_llm: Callable[..., Any],
        stub_search: Callable[..., Any],
        sample_blocks: list[Block],
    ) -> None:
        search = stub_search([SearchResult("AI news", "https://ai.example", "Recent models")])
        numeric = dict(PLAN, needs_search=True, search_queries=5)
        single = dict(PLAN, needs_search=True, search_queries="latest AI")
        provider = fake_llm(json_responses=[numeric, GENERATED, single, GENERATED])
        pipeline = ModifyPipeline(provider, search)

        first = pipeline.run(_request(sample_blocks))
        assert not first.search_performed
        assert search.queries == []
        assert [m.to_dict() for m in first.modifications] == GENERATED["modifications"]

        second = pipeline.run(_request(sample_blocks))
        assert second.search_performed
        assert search.queries == ["latest AI"]

    def test_prose_answer_becomes_suggestions(self, fake_llm: Callable[..., Any], sample_blocks: list[Block]) -> None:
        prose = "You could add a troubleshooting section and explain virtual environments in more depth. " * 2
        provider = fake_llm(json_responses=[PLAN, prose])

        result = ModifyPipeline(provider).run(_request(sample_blocks, "suggest improvements"))

        assert result.modifications == []
        assert result.explanation.startswith("AI Suggestions:\n\n")
        assert not result.used_fallback

    def test_generation_failure_uses_rule_matcher(self, fake_llm: Callable[..., Any]) -> None:
        provider = fake_llm(json_responses=[PLAN, LLMError("timeout")])

        result = ModifyPipeline(provider).run(_request([], "change the title to Hello World"))

        assert result.used_fallback
        assert result.plan is not None and result.plan.action_type == "expand"
        assert [m.to_dict() for m in result.modifications] == [{"type": "update_title", "title": "Hello World"}]

    def test_missing_modifications_list_uses_rule_matcher(self, fake_llm: Callable[..., Any]) -> None:
        provider = fake_llm(json_responses=[PLAN, {"explanation": "nothing"}])
        result = ModifyPipeline(provider).run(_request([], "delete paragraph 2"))

        assert result.used_fallback
        assert [m.to_dict() for m in result.modifications] == [{"type": "delete", "paragraph_index": 1}]

    def test_all_invalid_modifications_use_rule_matcher(self, fake_llm: Callable[..., Any]) -> None:
        provider = fake_llm(json_responses=[PLAN, {"modifications": [{"type": "append"}]}])
        result = ModifyPipeline(provider).run(_request([], "delete paragraph 2"))
        assert result.used_fallback

    def test_explanation_defaults_to_thought_process(self, fake_llm: Callable[..., Any]) -> None:
        provider = fake_llm(json_responses=[PLAN, {"modifications": GENERATED["modifications"]}])
        result = ModifyPipeline(provider).run(_request([]))
        assert result.explanation == "Expand the installation section"

    def test_no_provider_uses_rule_matcher(self) -> None:
        result = ModifyPipeline(None).run(_request([], "change the title to Hello World"))

        assert result.used_fallback
        assert result.plan is None
        assert result.to_dict()["modifications"] == [{"type": "update_title", "title": "Hello World"}]

    def test_simple_stories_instruction_skips_llm(self, fake_llm: Callable[..., Any]) -> None:
        provider = fake_llm()
        result = ModifyPipeline(provider).run(_request([], "rewrite the Background section", variant="stories"))

        assert provider.calls == []
        assert result.used_fallback
        assert result.modifications[0].target == "Background"

    def test_rich_stories_instruction_uses_llm(self, fake_llm: Callable[..., Any]) -> None:
        provider = fake_llm(json_responses=[PLAN, GENERATED])
        result = ModifyPipeline(provider).run(_request([], "add more detail to the ending", variant="stories"))

        assert len(provider.calls) == 2
        assert not result.used_fallback


def test_needs_rich_content() -> None:
    assert needs_rich_content("Make it more DETAILED")
    assert needs_rich_content("请扩展这一段")
    assert not needs_rich_content("fix typos")
