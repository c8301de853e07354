"""Stage 2: turn a Perception into an ExecutionPlan.

The LLM proposes the plan; when it is unavailable or answers with something
unusable, a rule-based plan is derived from the perception instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from quill.analyzer import DocumentStructure, h2_sections, has_subheadings
from quill.errors import JSONParseError
from quill.json_repair import coerce_str_list, parse_llm_json
from quill.providers.base import LLMError, LLMProvider

from .perception import Perception

logger = logging.getLogger(__name__)

PlanAction = Literal["expand", "rewrite", "insert", "delete", "correct"]
PLAN_ACTIONS: tuple[str, ...] = ("expand", "rewrite", "insert", "delete", "correct")

DEFAULT_ESTIMATED_WORDS = 300
DEFAULT_READING_TIME_INCREASE = 1.5
CLARIFY_SECTION_QUESTION = "Which paragraph would you like me to modify? Please specify the H2 section title."

_SEARCH_HINTS = ("search", "搜索", "最新", "latest")

PLANNING_SYSTEM = """You are a professional blog editing planning assistant.

CRITICAL INSTRUCTIONS:
1. You MUST respond with ONLY a valid JSON object.
2. Do not include any text before or after the JSON.
3. The JSON must follow the structure below exactly.

Your task:
1. Analyze the user's request and the current document structure.
2. Decide on the best course of action (expand, rewrite, insert, delete or correct).
3. Determine if web search is needed for accurate content.

REQUIRED JSON format:
{
  "thought_process": "Brief reasoning",
  "target_location": {
    "section_index": 1,
    "section_title": "Target H2 Title or New Title",
    "paragraph_index": null,
    "block_range": [0, 0]
  },
  "action_plan": {
    "type": "expand",
    "estimated_words": 400,
    "estimated_reading_time_increase": 2
  },
  "needs_search": true,
  "search_queries": ["query 1", "query 2"],
  "clarification_needed": false,
  "clarification_questions": [],
  "suggestions": []
}"""


@dataclass
class TargetLocation:
    section_index: int | None = None
    section_title: str | None = None
    paragraph_index: int | None = None
    block_range: tuple[int, int] | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "TargetLocation":
        if not isinstance(data, dict):
            return cls()
        block_range = data.get("block_range")
        parsed_range: tuple[int, int] | None = None
        if isinstance(block_range, (list, tuple)) and len(block_range) == 2:
            try:
                parsed_range = (int(block_range[0]), int(block_range[1]))
            except (TypeError, ValueError):
                parsed_range = None
        return cls(
            section_index=_optional_int(data.get("section_index")),
            section_title=str(data["section_title"]) if data.get("section_title") else None,
            paragraph_index=_optional_int(data.get("paragraph_index")),
            block_range=parsed_range,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "section_index": self.section_index,
            "section_title": self.section_title,
            "paragraph_index": self.paragraph_index,
            "block_range": list(self.block_range) if self.block_range else None,
        }


@dataclass
class ActionPlan:
    type: str = "expand"
    estimated_words: int = DEFAULT_ESTIMATED_WORDS
    estimated_reading_time_increase: float = DEFAULT_READING_TIME_INCREASE

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "estimated_words": self.estimated_words,
            "estimated_reading_time_increase": self.estimated_reading_time_increase,
        }


@dataclass
class ExecutionPlan:
    thought_process: str
    target: TargetLocation = field(default_factory=TargetLocation)
    action: ActionPlan = field(default_factory=ActionPlan)
    needs_search: bool = False
    search_queries: list[str] = field(default_factory=list)
    clarification_needed: bool = False
    clarification_questions: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    from_llm: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExecutionPlan":
        action = data.get("action_plan") if isinstance(data.get("action_plan"), dict) else {}
        action_type = action.get("type")
        return cls(
            thought_process=str(data.get("thought_process") or "Planning generated"),
            target=TargetLocation.from_dict(data.get("target_location")),
            action=ActionPlan(
                type=action_type if action_type in PLAN_ACTIONS else "expand",
                estimated_words=_optional_int(action.get("estimated_words")) or 200,
                estimated_reading_time_increase=_optional_float(action.get("estimated_reading_time_increase"), 1.0),
            ),
            needs_search=bool(data.get("needs_search")),
            search_queries=coerce_str_list(data.get("search_queries")),
            clarification_needed=bool(data.get("clarification_needed")),
            clarification_questions=coerce_str_list(data.get("clarification_questions")),
            suggestions=coerce_str_list(data.get("suggestions")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "thought_process": self.thought_process,
            "target_location": self.target.to_dict(),
            "action_plan": self.action.to_dict(),
            "needs_search": self.needs_search,
            "search_queries": self.search_queries,
            "clarification_needed": self.clarification_needed,
            "clarification_questions": self.clarification_questions,
            "suggestions": self.suggestions,
            "from_llm": self.from_llm,
        }


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def describe_for_planning(perception: Perception) -> str:
    structure: DocumentStructure = perception.structure
    outline = "\n".join(
        f"{'  ' * (node.level - 1)}- {node.title} (H{node.level})"
        for node in structure.outline
        if node.level <= 2
    )
    sections = h2_sections(structure)
    h2_lines = "\n".join(
        f"{i + 1}. {s.title} ({s.word_count} words, "
        f"{'has' if has_subheadings(structure, s) else 'no'} H3 subheadings)"
        for i, s in enumerate(sections)
    )
    lines = [
        "Document structure:",
        "Outline:",
        outline or "(none)",
        "",
        "H2 paragraphs:",
        h2_lines or "(none)",
        "",
        "Document stats:",
        f"- Total words: {structure.stats.total_words}",
        f"- Reading time: {structure.stats.reading_time_minutes} minutes",
        f"- Number of H2 paragraphs: {len(sections)}",
        "",
        f'User instruction: "{perception.message}"',
        f"Detected intent: {perception.intent}",
        f"Detected scope: {perception.scope.type}",
    ]
    if perception.scope.target_titles:
        lines.append(f"Target paragraphs: {', '.join(perception.scope.target_titles)}")
    if perception.entities.action_type:
        lines.append(f"Action type: {perception.entities.action_type}")
    lines += ["", "Please generate a detailed execution plan in JSON format."]
    return "\n".join(lines)


class PlanningAgent:
    def __init__(self, provider: LLMProvider | None, *, timeout_seconds: float = 60.0) -> None:
        self._provider = provider
        self._timeout = timeout_seconds

    def plan(self, perception: Perception) -> ExecutionPlan:
        if self._provider is None:
            return self.fallback_plan(perception)
        try:
            raw = self._provider.chat_json(
                system=PLANNING_SYSTEM,
                user=describe_for_planning(perception),
                timeout_seconds=self._timeout,
                temperature=0.3,
            )
            if not raw or not raw.strip():
                logger.warning("Empty planning response, using rule-based plan")
                return self.fallback_plan(perception)
            parsed = parse_llm_json(raw, allow_text_only=False)
        except (LLMError, JSONParseError) as e:
            logger.warning("Planning failed, using rule-based plan: %s", e)
            return self.fallback_plan(perception)
        if parsed is None:
            return self.fallback_plan(perception)
        return ExecutionPlan.from_dict(parsed)

    def fallback_plan(self, perception: Perception) -> ExecutionPlan:
        message = perception.message
        lower = message.lower()
        sections = h2_sections(perception.structure)

        target = TargetLocation()
        if perception.scope.target_titles:
            wanted = perception.scope.target_titles[0]
            for section in sections:
                if section.title == wanted:
                    target.section_index = perception.structure.sections.index(section)
                    target.section_title = wanted
                    break

        action: str = "expand"
        if perception.intent == "delete_content":
            action = "delete"
        elif perception.intent == "add_content" or "添加" in message or "add" in lower:
            action = "insert"
        elif "rewrite" in lower or "重写" in message:
            action = "rewrite"

        is_insert = action == "insert"
        needs_search = is_insert or any(h in lower for h in _SEARCH_HINTS)
        no_target = target.section_index is None
        return ExecutionPlan(
            thought_process=(
                f'Based on the request "{message}", I will {action} content. Fallback plan activated.'
            ),
            target=target,
            action=ActionPlan(type=action),
            needs_search=needs_search,
            search_queries=[message] if needs_search else [],
            clarification_needed=not is_insert and no_target and perception.scope.type != "full_article",
            clarification_questions=[CLARIFY_SECTION_QUESTION] if not is_insert and no_target else [],
            from_llm=False,
        )
