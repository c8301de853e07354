"""Instruction-driven document modification: plan → retrieve → generate.

Stage 1 asks the LLM what the user wants (target sections, whether fresh
facts are needed). Stage 2 optionally searches the web. Stage 3 asks the LLM
for structured modifications. Any stage may fail; planning falls back to a
neutral plan, and generation falls back to the rule-based matcher, so the
caller always gets a result.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Literal

from .analyzer import DocumentAnalyzer, DocumentStructure
from .blocks import Block, blocks_to_text
from .errors import JSONParseError, ValidationError
from .fallback import generate_default_modifications
from .instructions import ChatMessage, extract_smart_instruction
from .json_repair import coerce_str_list, parse_llm_json
from .language import Language, detect_language
from .modifications import Modification, coerce_modifications
from .providers.base import LLMError, LLMProvider
from .search import SearchClient, format_search_results, perform_web_search

logger = logging.getLogger(__name__)

Variant = Literal["blog", "stories"]

MIN_INSTRUCTION_LENGTH = 5
MAX_CONTENT_CHARS = 3000
MAX_SEARCH_QUERIES = 3

ACTION_TYPES = ("expand", "rewrite", "add_section", "apply_suggestions", "consultation", "other")

LANGUAGE_NAMES: dict[str, str] = {
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "ru": "Russian",
    "en": "English",
}

_CONSULTATION = re.compile(r"建议|分析|优化|how to|suggest|analyze", re.IGNORECASE)
_RICH_CONTENT_KEYWORDS = ("详细", "更多", "添加", "扩展", "丰富", "add more", "detailed", "expand")


PLANNING_SYSTEM = """You are a professional blog editor planner.

YOU MUST RETURN VALID JSON.

{structure}

User instruction: "{instruction}"

Analyze the request and create an actionable modification plan.

1. If the user says "根据建议修改" / "apply suggestions" / "按照建议", they want to APPLY previous
   suggestions: set action_type to "apply_suggestions" and needs_search to false.
2. If the user asks for "建议" / "suggestions" / "分析" / "analyze", this is a consultation:
   set action_type to "consultation".
3. Otherwise identify the target section(s) from the H2 headings and decide whether search is needed.

Required JSON format:
{{
  "thought_process": "Reasoning about what to do...",
  "target_sections": ["Section Title 1"],
  "needs_search": false,
  "search_queries": ["query 1"],
  "action_type": "expand" | "rewrite" | "add_section" | "apply_suggestions" | "consultation" | "other"
}}

Set needs_search=true only when the user mentions "latest", "recent", "search", "最新" or "搜索"."""

GENERATION_SYSTEM = """You are a professional blog editor and content creation expert.

YOU MUST RETURN VALID JSON.

{structure}

Plan:
{plan}

Search results:
{search}

Requirements:
1. Never return plain text suggestions; always return a JSON object with "modifications" and "explanation".
2. Even if the user asks for suggestions, convert them into actionable modifications.
3. Escape all newlines in content strings as \\n. Do not put raw line breaks inside JSON strings.

Required JSON format:
{{
  "modifications": [{{"type": "append", "content": "Paragraph one...\\n\\nParagraph two..."}}],
  "explanation": "Brief explanation of what was changed"
}}

Modification types:
- update_title: {{"type": "update_title", "title": "New Title"}}
- append: {{"type": "append", "content": "..."}}
- add_section: {{"type": "add_section", "content": "## Section Title\\n\\nContent..."}}
- replace: {{"type": "replace", "content": "..."}}
- insert: {{"type": "insert", "position": 0, "content": "..."}}
- delete: {{"type": "delete", "paragraphIndex": 0}}
- replace_paragraph: {{"type": "replace_paragraph", "paragraphIndex": 0, "content": "..."}}

Content guidelines:
- Content language: {language}
- For "detailed" requests generate 300-500 words.
- Use facts from the search results when available.
- Use \\n\\n for paragraph breaks; use add_section for new H2 sections."""

GENERATION_USER = """Current article title: {title}
Current content (text):
{content}

User instruction: {instruction}

Execute the plan and generate modifications. If search results are provided, use them to enrich the content.
{length_guideline}"""

CONSULTATION_GUIDELINE = (
    "If providing suggestions or advice rather than direct modifications, keep the response "
    "concise (under 1000 words) and structured. Focus on the top 3-5 points."
)


@dataclass
class ModifyRequest:
    post_id: str
    instruction: str
    title: str = "Untitled"
    content: list[Block] = field(default_factory=list)
    history: list[ChatMessage] = field(default_factory=list)
    variant: Variant = "blog"

    def validate(self) -> None:
        if not self.post_id or not self.instruction:
            raise ValidationError("Invalid request: post_id and instruction are required")
        if len(self.instruction.strip()) < MIN_INSTRUCTION_LENGTH:
            raise ValidationError(
                "Instruction too short: please provide a more detailed instruction "
                f"(at least {MIN_INSTRUCTION_LENGTH} characters)."
            )


@dataclass
class ModificationPlan:
    thought_process: str = "Fallback to direct generation"
    target_sections: list[str] = field(default_factory=list)
    needs_search: bool = False
    search_queries: list[str] = field(default_factory=list)
    action_type: str = "other"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModificationPlan":
        action = data.get("action_type")
        return cls(
            thought_process=str(data.get("thought_process") or ""),
            target_sections=coerce_str_list(data.get("target_sections")),
            needs_search=bool(data.get("needs_search")),
            search_queries=coerce_str_list(data.get("search_queries")),
            action_type=action if action in ACTION_TYPES else "other",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "thought_process": self.thought_process,
            "target_sections": self.target_sections,
            "needs_search": self.needs_search,
            "search_queries": self.search_queries,
            "action_type": self.action_type,
        }


@dataclass
class ModifyResult:
    modifications: list[Modification]
    explanation: str
    plan: ModificationPlan | None = None
    instruction: str = ""
    search_performed: bool = False
    used_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "modifications": [m.to_dict() for m in self.modifications],
            "explanation": self.explanation,
            "plan": self.plan.to_dict() if self.plan else None,
            "instruction": self.instruction,
            "search_performed": self.search_performed,
            "used_fallback": self.used_fallback,
        }


def describe_structure(structure: DocumentStructure) -> str:
    """Human-readable structure summary embedded into prompts."""
    stats = structure.stats
    outline = "\n".join(
        f"{i + 1}. {node.title} (Level {node.level})" for i, node in enumerate(structure.outline)
    )
    sections = "\n".join(
        f"Section {i + 1}: {s.title or '(No heading)'} - {s.word_count} words"
        for i, s in enumerate(structure.sections)
    )
    return (
        "Document structure:\n"
        f"- Total sections: {len(structure.sections)}\n"
        f"- Total words: {stats.total_words}\n"
        f"- Total paragraphs: {stats.total_paragraphs}\n"
        f"- Total headings: {stats.total_headings}\n"
        f"- Reading time: {stats.reading_time_minutes} minutes\n\n"
        f"Outline:\n{outline or '(none)'}\n\n"
        f"Sections:\n{sections or '(none)'}"
    )


def needs_rich_content(instruction: str) -> bool:
    lower = instruction.lower()
    return any(k in lower for k in _RICH_CONTENT_KEYWORDS)


def suggestions_explanation(text: str, language: Language) -> str:
    if language == "zh":
        return (
            f"AI 建议（Suggestions）:\n\n{text}\n\n"
            "提示：这是 AI 的优化建议。如需应用这些建议，请说“根据你的建议修改文章”。"
        )
    return (
        f"AI Suggestions:\n\n{text}\n\n"
        'Tip: these are suggestions only. To apply them, say "apply your suggestions to the article".'
    )


class ModifyPipeline:
    """Turns a free-form instruction into document modifications."""

    def __init__(
        self,
        provider: LLMProvider | None,
        search_client: SearchClient | None = None,
        *,
        analyzer: DocumentAnalyzer | None = None,
        timeout_seconds: float = 60.0,
        temperature: float = 0.7,
    ) -> None:
        self._provider = provider
        self._search = search_client
        self._analyzer = analyzer or DocumentAnalyzer()
        self._timeout = timeout_seconds
        self._temperature = temperature

    def run(self, request: ModifyRequest) -> ModifyResult:
        request.validate()
        language = detect_language(request.instruction)

        instruction = extract_smart_instruction(
            self._provider,
            request.instruction,
            request.history,
            title=request.title or "Untitled",
            timeout_seconds=self._timeout,
        )

        if request.variant == "stories" and not needs_rich_content(instruction):
            logger.info("Simple stories instruction, using rule-based matcher")
            return self._fallback(instruction, language, request.variant, plan=None)

        if self._provider is None:
            logger.info("No LLM provider configured, using rule-based matcher")
            return self._fallback(instruction, language, request.variant, plan=None)

        structure = self._analyzer.analyze(request.content)
        structure_info = describe_structure(structure)

        plan = self.plan(instruction, structure_info)
        search_context, searched = self.retrieve(plan)
        return self.generate(request, instruction, language, structure_info, plan, search_context, searched)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def plan(self, instruction: str, structure_info: str) -> ModificationPlan:
        provider = self._require_provider()
        logger.info("Stage 1: planning")
        try:
            raw = provider.chat_json(
                system=PLANNING_SYSTEM.format(structure=structure_info, instruction=instruction),
                user=f'Please analyze the request: "{instruction}"',
                timeout_seconds=self._timeout,
                temperature=0.3,
            )
            parsed = parse_llm_json(raw)
            if parsed is None:
                raise JSONParseError("Text-only response, not a modification plan", raw=raw)
            plan = ModificationPlan.from_dict(parsed)
        except (LLMError, JSONParseError, TypeError, ValueError) as e:
            logger.warning("Planning failed, falling back to direct generation: %s", e)
            return ModificationPlan()
        logger.debug("Plan: %s", plan)
        return plan

    def retrieve(self, plan: ModificationPlan) -> tuple[str, bool]:
        if not (plan.needs_search and plan.search_queries and self._search is not None):
            logger.info("Stage 2: skipped (no search needed)")
            return "", False
        logger.info("Stage 2: retrieval for %d queries", len(plan.search_queries[:MAX_SEARCH_QUERIES]))
        results = perform_web_search(self._search, plan.search_queries, max_queries=MAX_SEARCH_QUERIES)
        return format_search_results(results), bool(results)

    def generate(
        self,
        request: ModifyRequest,
        instruction: str,
        language: Language,
        structure_info: str,
        plan: ModificationPlan,
        search_context: str,
        searched: bool,
    ) -> ModifyResult:
        provider = self._require_provider()
        logger.info("Stage 3: generation")

        content_text = blocks_to_text(request.content)
        if len(content_text) > MAX_CONTENT_CHARS:
            content_text = content_text[:MAX_CONTENT_CHARS] + "... (truncated)"

        system = GENERATION_SYSTEM.format(
            structure=structure_info,
            plan=json.dumps(plan.to_dict(), ensure_ascii=False, indent=2),
            search=search_context or "(No search results)",
            language=LANGUAGE_NAMES.get(language, "English"),
        )
        user = GENERATION_USER.format(
            title=request.title or "Untitled",
            content=content_text or "(empty)",
            instruction=instruction,
            length_guideline=CONSULTATION_GUIDELINE if _CONSULTATION.search(instruction) else "",
        )

        try:
            raw = provider.chat_json(
                system=system,
                user=user,
                timeout_seconds=self._timeout,
                temperature=self._temperature,
            )
            parsed = parse_llm_json(raw)
        except (LLMError, JSONParseError) as e:
            logger.warning("Generation failed, using rule-based matcher: %s", e)
            return self._fallback(instruction, language, request.variant, plan=plan, searched=searched)

        if parsed is None:
            logger.info("LLM returned suggestions instead of modifications")
            return ModifyResult(
                modifications=[],
                explanation=suggestions_explanation(raw.strip(), language),
                plan=plan,
                instruction=instruction,
                search_performed=searched,
            )

        if not isinstance(parsed.get("modifications"), list):
            logger.warning("Generation response has no modifications list, using rule-based matcher")
            return self._fallback(instruction, language, request.variant, plan=plan, searched=searched)

        modifications = coerce_modifications(parsed["modifications"])
        if parsed["modifications"] and not modifications:
            logger.warning("All generated modifications were invalid, using rule-based matcher")
            return self._fallback(instruction, language, request.variant, plan=plan, searched=searched)

        explanation = parsed.get("explanation")
        return ModifyResult(
            modifications=modifications,
            explanation=explanation if isinstance(explanation, str) and explanation else plan.thought_process,
            plan=plan,
            instruction=instruction,
            search_performed=searched,
        )

    def _require_provider(self) -> LLMProvider:
        if self._provider is None:
            raise LLMError("No LLM provider configured")
        return self._provider

    def _fallback(
        self,
        instruction: str,
        language: Language,
        variant: Variant,
        *,
        plan: ModificationPlan | None,
        searched: bool = False,
    ) -> ModifyResult:
        modifications, explanation = generate_default_modifications(instruction, language, variant=variant)
        return ModifyResult(
            modifications=modifications,
            explanation=explanation,
            plan=plan,
            instruction=instruction,
            search_performed=searched,
            used_fallback=True,
        )
