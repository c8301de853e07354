"""End-to-end tests for the agent orchestrator with a scripted provider."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from quill.agent import AgentOrchestrator, AgentRequest
from quill.agent.generation import GeneratedContent
from quill.agent.orchestrator import bullet_summary, validate_quality
from quill.agent.planning import CLARIFY_SECTION_QUESTION, ActionPlan, ExecutionPlan
from quill.blocks import Block, heading, paragraph
from quill.db import Database
from quill.providers.base import LLMError
from quill.search import SEARCH_UNAVAILABLE, SearchResult
from quill.style import HEADING_HEAVY
from quill.versions import VersionStore

PLAN = {
    "thought_process": "Add troubleshooting help to the installation section",
    "target_location": {"section_title": "Installation"},
    "action_plan": {"type": "expand", "estimated_words": 100},
    "needs_search": False,
}

GENERATION = {
    "modifications": [{"type": "append", "content": "## Troubleshooting\n\nIf the installer fails, retry."}],
    "explanation": "Added a troubleshooting section.",
    "changes_summary": {"words_added": 100},
}


def _request(blocks: list[Block], message: str = "expand the installation section", **kwargs: Any) -> AgentRequest:
    return AgentRequest(message=message, post_id="post-1", content=blocks, title="Python Guide", **kwargs)


class TestQualityCheck:
    def test_complete_generation(self) -> None:
        plan = ExecutionPlan(thought_process="t", action=ActionPlan(estimated_words=100))
        quality = validate_quality(GeneratedContent(modifications=[], explanation="", words_added=150), plan)

        assert quality.completeness == 10
        assert quality.overall_score == 8
        assert quality.issues == []

    def test_brief_generation(self) -> None:
        plan = ExecutionPlan(thought_process="t", action=ActionPlan(estimated_words=200))
        quality = validate_quality(GeneratedContent(modifications=[], explanation="", words_added=50), plan)

        assert quality.overall_score == 2
        assert quality.issues == ["Content may be too brief"]
        assert quality.to_dict()["suggestions_for_improvement"] == ["Consider adding more details"]


class TestExecute:
    def test_modification_preview(self, fake_llm: Callable[..., Any], sample_blocks: list[Block]) -> None:
        orchestrator = AgentOrchestrator(fake_llm(json_responses=[PLAN, GENERATION]))

        response = orchestrator.execute(_request(sample_blocks, conversation_id="conv-1"))

        assert response.conversation_id == "conv-1"
        assert response.message_id.startswith("msg_")
        assert response.reply.type == "modification_preview"
        assert response.reply.content == "Added a troubleshooting section."
        assert response.reply.metadata["search_performed"] is False
        assert response.reply.metadata["cache_hit"] == {"document_structure": False, "writing_style": False}
        assert "total" in response.reply.metadata["performance"]

        preview = response.modification_preview
        assert preview is not None
        assert preview["quality_score"] == 0.8
        assert len(preview["preview_blocks"]) == 11
        assert preview["preview_title"] == "Python Guide"
        assert preview["diff"]["stats"]["blocks_added"] == 2
        assert set(preview["tool_insights"]) == {"seo", "readability", "overall_score"}

        data = response.to_dict()
        assert data["_debug"]["planning"]["from_llm"] is True
        assert data["_debug"]["search"] is None

    def test_second_run_hits_caches(self, fake_llm: Callable[..., Any], sample_blocks: list[Block]) -> None:
        orchestrator = AgentOrchestrator(fake_llm(json_responses=[PLAN, GENERATION, PLAN, GENERATION]))

        orchestrator.execute(_request(sample_blocks))
        response = orchestrator.execute(_request(sample_blocks))

        assert response.reply.metadata["cache_hit"] == {"document_structure": True, "writing_style": True}

    def test_clarification(self, fake_llm: Callable[..., Any], sample_blocks: list[Block]) -> None:
        provider = fake_llm(json_responses=[LLMError("planner down")])

        response = AgentOrchestrator(provider).execute(_request(sample_blocks, "make it better"))

        assert response.reply.type == "clarification"
        assert response.reply.content == CLARIFY_SECTION_QUESTION
        assert response.reply.metadata["available_paragraphs"] == ["Installation", "Basic Syntax"]
        assert response.modification_preview is None
        assert len(provider.calls) == 1

    def test_search_is_summarized(
        self,
        fake_llm: Callable[..., Any],
        stub_search: Callable[..., Any],
        sample_blocks: list[Block],
    ) -> None:
        plan = dict(PLAN, needs_search=True, search_queries=["python installer errors"])
        provider = fake_llm(json_responses=[plan, GENERATION], text_responses=["  Installers fail on old pip.  "])
        search = stub_search([SearchResult("Pip issues", "https://pip.example", "Upgrade pip first.")])

        response = AgentOrchestrator(provider, search).execute(_request(sample_blocks))

        assert response.reply.metadata["search_performed"] is True
        assert response.debug["search"]["summary"] == "Installers fail on old pip."
        assert search.queries == ["python installer errors"]
        generation_prompt = provider.calls[-1]["user"]
        assert "Installers fail on old pip." in generation_prompt
        assert "[1] Pip issues - https://pip.example" in generation_prompt

    def test_search_without_client(self, fake_llm: Callable[..., Any], sample_blocks: list[Block]) -> None:
        plan = dict(PLAN, needs_search=True, search_queries=["anything"])
        response = AgentOrchestrator(fake_llm(json_responses=[plan, GENERATION])).execute(_request(sample_blocks))
        assert response.debug["search"]["summary"] == SEARCH_UNAVAILABLE

    def test_failure_becomes_error_reply(self, fake_llm: Callable[..., Any], sample_blocks: list[Block]) -> None:
        provider = fake_llm(json_responses=[PLAN, LLMError("model crashed")])

        response = AgentOrchestrator(provider).execute(_request(sample_blocks))

        assert response.reply.type == "text"
        assert response.reply.content.startswith("I encountered an error while processing your request: model crashed")
        assert response.modification_preview is None
        assert "_debug" not in response.to_dict()

    def test_writing_style_from_saved_versions(
        self, fake_llm: Callable[..., Any], temp_db: Database, sample_blocks: list[Block]
    ) -> None:
        versions = VersionStore(temp_db)
        versions.save_version(
            "older-post",
            "writer",
            "旧文章",
            [heading("方法"), paragraph("因此我们采用新方法。然而结果表明效果显著。")],
        )
        provider = fake_llm(json_responses=[PLAN, GENERATION])

        response = AgentOrchestrator(provider, versions=versions).execute(_request(sample_blocks, user_id="writer"))

        style = response.debug["writing_style"]
        assert style["formality_level"] == 10
        assert style["preferred_structure"] == HEADING_HEAVY
        assert "Formality level: 10/10 (Formal)" in provider.calls[-1]["system"]


def test_bullet_summary() -> None:
    text = bullet_summary([SearchResult("T", "https://t.example", "x" * 300)])
    assert text == "- T: " + "x" * 200 + "..."
