"""Agentic editing pipeline: perceive, plan, search, generate, check, preview.

The orchestrator never raises for pipeline failures; the caller always gets
an AgentResponse, with an error reply when a stage blew up.
"""

from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, Literal

from quill.analyzer import DocumentAnalyzer, DocumentStructure, h2_sections
from quill.apply import apply_modifications
from quill.blocks import Block, string_to_blocks
from quill.cache import StageCache, content_hash
from quill.config import get_config
from quill.diff import compute_diff
from quill.errors import record_error
from quill.logging_setup import LogContext
from quill.providers.base import LLMError, LLMProvider
from quill.search import SEARCH_UNAVAILABLE, SearchClient, SearchContext, SearchResult, perform_web_search
from quill.style import WritingStyle, analyze_writing_style
from quill.tools import analyze_readability, check_seo
from quill.versions import VersionStore

from .generation import ContentGenerator, GeneratedContent
from .perception import PerceptionAgent
from .planning import ExecutionPlan, PlanningAgent

logger = logging.getLogger(__name__)

ReplyType = Literal["text", "modification_preview", "clarification", "suggestion"]

MAX_SEARCH_QUERIES = 3
RESULTS_PER_QUERY = 3
MAX_SEARCH_RESULTS = 5
QUALITY_THRESHOLD = 7
SUMMARY_SYSTEM = (
    "You are a research assistant. Summarize the following search results into a concise, "
    "informative summary."
)


def _random_id(prefix: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


@dataclass
class AgentRequest:
    message: str
    post_id: str
    content: list[Block] = field(default_factory=list)
    title: str = ""
    user_id: str = "anonymous"
    conversation_id: str | None = None


@dataclass
class QualityCheck:
    completeness: float
    overall_score: float
    issues: list[str] = field(default_factory=list)
    suggestions_for_improvement: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "completeness": round(self.completeness, 2),
            "overall_score": round(self.overall_score, 2),
            "issues": self.issues,
            "suggestions_for_improvement": self.suggestions_for_improvement,
        }


@dataclass
class AgentReply:
    type: ReplyType
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "content": self.content, "metadata": self.metadata}


@dataclass
class AgentResponse:
    conversation_id: str
    message_id: str
    reply: AgentReply
    modification_preview: dict[str, Any] | None = None
    suggestions: list[dict[str, Any]] = field(default_factory=list)
    debug: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "conversation_id": self.conversation_id,
            "message_id": self.message_id,
            "reply": self.reply.to_dict(),
            "suggestions": self.suggestions,
        }
        if self.modification_preview is not None:
            data["modification_preview"] = self.modification_preview
        if self.debug:
            data["_debug"] = self.debug
        return data


def validate_quality(generation: GeneratedContent, plan: ExecutionPlan) -> QualityCheck:
    """Completeness against the planned length; scores are on a 0-10 scale."""
    target = plan.action.estimated_words or 1
    completeness = min(10.0, generation.words_added / target * 10)
    overall = completeness * 0.8
    brief = overall < QUALITY_THRESHOLD
    return QualityCheck(
        completeness=completeness,
        overall_score=overall,
        issues=["Content may be too brief"] if brief else [],
        suggestions_for_improvement=["Consider adding more details"] if brief else [],
    )


def bullet_summary(results: list[SearchResult]) -> str:
    return "\n".join(f"- {r.title}: {r.content[:200]}..." for r in results)


class AgentOrchestrator:
    def __init__(
        self,
        provider: LLMProvider,
        search_client: SearchClient | None = None,
        *,
        versions: VersionStore | None = None,
        structure_cache: StageCache[DocumentStructure] | None = None,
        style_cache: StageCache[WritingStyle] | None = None,
        timeout_seconds: float = 60.0,
        temperature: float = 0.7,
    ) -> None:
        cache_config = get_config().cache
        self._provider = provider
        self._search = search_client
        self._versions = versions or VersionStore()
        if structure_cache is None:
            structure_cache = StageCache(cache_config.structure_ttl, max_entries=cache_config.max_entries)
        if style_cache is None:
            style_cache = StageCache(cache_config.style_ttl, max_entries=cache_config.max_entries)
        self._structure_cache = structure_cache
        self._style_cache = style_cache
        self._timeout = timeout_seconds
        self._analyzer = DocumentAnalyzer()
        self._perception = PerceptionAgent(self._analyzer)
        self._planning = PlanningAgent(provider, timeout_seconds=timeout_seconds)
        self._generator = ContentGenerator(provider, timeout_seconds=timeout_seconds, temperature=temperature)

    def execute(self, request: AgentRequest) -> AgentResponse:
        conversation_id = request.conversation_id or _random_id("conv")
        message_id = _random_id("msg")
        with LogContext(conversation_id=conversation_id, post_id=request.post_id):
            return self._run(request, conversation_id, message_id)

    def _run(self, request: AgentRequest, conversation_id: str, message_id: str) -> AgentResponse:
        timings: dict[str, int] = {}
        started = time.perf_counter()

        def _mark(stage: str, since: float) -> float:
            now = time.perf_counter()
            timings[stage] = round((now - since) * 1000)
            return now

        try:
            # Perceive
            t = time.perf_counter()
            structure_key = f"structure:{request.post_id}:{content_hash(request.content)}"
            structure, structure_hit = self._structure_cache.get_or_set(
                structure_key, lambda: self._analyzer.analyze(request.content)
            )
            style, style_hit = self._style_cache.get_or_set(
                f"style:{request.user_id}", lambda: self._writing_style(request.user_id)
            )
            perception = self._perception.perceive(request.message, request.content, structure, style)
            t = _mark("perception", t)

            # Plan
            plan = self._planning.plan(perception)
            t = _mark("planning", t)
            if plan.clarification_needed:
                return AgentResponse(
                    conversation_id=conversation_id,
                    message_id=message_id,
                    reply=AgentReply(
                        type="clarification",
                        content="\n".join(plan.clarification_questions),
                        metadata={"available_paragraphs": [s.title for s in h2_sections(structure)]},
                    ),
                    debug={"perception": perception.to_dict(), "planning": plan.to_dict()},
                )

            # Search
            search: SearchContext | None = None
            if plan.needs_search and plan.search_queries:
                search = self.perform_search(plan.search_queries)
                t = _mark("search", t)

            # Generate
            generation = self._generator.generate(plan, perception, request.content, search)
            t = _mark("generation", t)

            # Check
            quality = validate_quality(generation, plan)
            applied = apply_modifications(request.content, request.title, generation.modifications)
            generated_text = "\n\n".join(m.content or "" for m in generation.modifications)
            seo = check_seo(applied.blocks or string_to_blocks(generated_text), applied.title)
            readability = analyze_readability(generated_text)
            t = _mark("validation", t)

            preview = {
                "modifications": [m.to_dict() for m in generation.modifications],
                "explanation": generation.explanation,
                "quality_score": round(quality.overall_score / 10, 3),
                "preview_blocks": applied.blocks,
                "preview_title": applied.title,
                "diff": compute_diff(request.content, applied.blocks).to_dict(),
                "tool_insights": {
                    "seo": seo.to_dict(),
                    "readability": readability.to_dict(),
                    "overall_score": round((seo.overall_score + readability.overall_score) / 2),
                },
            }
            timings["total"] = round((time.perf_counter() - started) * 1000)
            logger.info("Agent pipeline finished in %dms", timings["total"])

            return AgentResponse(
                conversation_id=conversation_id,
                message_id=message_id,
                reply=AgentReply(
                    type="modification_preview",
                    content=generation.explanation,
                    metadata={
                        "thought_process": plan.thought_process,
                        "search_performed": search is not None,
                        "cache_hit": {"document_structure": structure_hit, "writing_style": style_hit},
                        "performance": timings,
                    },
                ),
                modification_preview=preview,
                suggestions=[
                    {
                        "type": "content",
                        "priority": "medium",
                        "title": "Content Enhancement",
                        "description": s,
                        "action": s,
                    }
                    for s in plan.suggestions[:1]
                ],
                debug={
                    "perception": perception.to_dict(),
                    "planning": plan.to_dict(),
                    "search": search.to_dict() if search else None,
                    "quality": quality.to_dict(),
                    "writing_style": style.to_dict(),
                },
            )
        except Exception as e:  # noqa: BLE001
            logger.exception("Agent pipeline failed")
            record_error(
                source="agent",
                operation="orchestrator.execute",
                exc=e,
                context={"post_id": request.post_id, "conversation_id": conversation_id},
            )
            return AgentResponse(
                conversation_id=conversation_id,
                message_id=message_id,
                reply=AgentReply(
                    type="text",
                    content=(
                        f"I encountered an error while processing your request: {e}. "
                        "Please try again or rephrase your request."
                    ),
                ),
            )

    def perform_search(self, queries: list[str]) -> SearchContext:
        if self._search is None:
            return SearchContext(results=[], summary=SEARCH_UNAVAILABLE)
        results = perform_web_search(
            self._search,
            queries,
            max_queries=MAX_SEARCH_QUERIES,
            max_results=RESULTS_PER_QUERY,
            keep=MAX_SEARCH_RESULTS,
        )
        if not results:
            return SearchContext(results=[], summary=SEARCH_UNAVAILABLE)
        return SearchContext(results=results, summary=self.summarize(results))

    def summarize(self, results: list[SearchResult]) -> str:
        prompt = "\n\n".join(
            f"[{i + 1}] {r.title}\n{r.content[:500]}...\nSource: {r.url}" for i, r in enumerate(results)
        )
        try:
            summary = self._provider.chat_text(
                system=SUMMARY_SYSTEM, user=prompt, timeout_seconds=self._timeout, temperature=0.3
            )
        except LLMError as e:
            logger.warning("Search summarization failed, using bullet summary: %s", e)
            return bullet_summary(results)
        return summary.strip() or bullet_summary(results)

    def _writing_style(self, user_id: str) -> WritingStyle:
        return analyze_writing_style(self._versions.recent_user_content(user_id))
