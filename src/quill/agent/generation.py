"""Stage 4: generate modifications from the plan, search context and style."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from quill.blocks import Block, blocks_to_markdown
from quill.errors import JSONParseError
from quill.json_repair import parse_llm_json
from quill.modifications import Modification, coerce_modifications
from quill.providers.base import LLMProvider
from quill.search import SearchContext
from quill.style import WritingStyle

from .perception import Perception
from .planning import ExecutionPlan

logger = logging.getLogger(__name__)

GENERATION_SYSTEM = """You are a professional blog content creation assistant.

Task: generate high-quality blog content based on user requirements.
{style}
Generation requirements:
1. Accuracy: facts must be supported by sources; cite sources when referencing data.
2. Fluency: natural language in a blog register.
3. Structure: clear logic and paragraphing (use \\n\\n to separate paragraphs).
4. Detail: hit the target word count.
5. Timeliness: prefer the most recent information available.
6. Readability: suitable for general readers; explain technical terms.

Heading hierarchy:
- H1 is reserved for the article title.
- Use "## " lines for new main sections (H2).
- Use "### " lines for subsections inside an existing section (H3).
- Do not skip levels.

Output format (JSON):
{{
  "modifications": [
    {{
      "type": "append",
      "content": "Generated content...",
      "block_range": [12, 12],
      "metadata": {{"word_count": 380, "sources_used": [1, 2]}}
    }}
  ],
  "explanation": "What was added or changed, and why.",
  "changes_summary": {{"words_added": 380, "reading_time_increased": 1.9}}
}}

Modification types: update_title, append, add_section, replace, insert, delete, replace_paragraph."""

STYLE_TEMPLATE = """
User writing style profile:
- Average sentence length: {avg} characters
- Formality level: {formality}/10 ({label})
- Preferred structure: {structure}
{extra}
Match the user's writing style closely: similar sentence lengths, formality and phrasing.
"""


@dataclass
class GeneratedContent:
    modifications: list[Modification]
    explanation: str
    words_added: int = 0
    reading_time_increased: float = 0.0
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "modifications": [m.to_dict() for m in self.modifications],
            "explanation": self.explanation,
            "changes_summary": {
                "words_added": self.words_added,
                "reading_time_increased": self.reading_time_increased,
            },
        }


def style_guidance(style: WritingStyle | None) -> str:
    if style is None:
        return ""
    extra = []
    if style.common_phrases:
        extra.append(f"- Common phrases: {', '.join(style.common_phrases[:3])}")
    if style.use_of_examples:
        extra.append("- Frequently uses examples and illustrations")
    return STYLE_TEMPLATE.format(
        avg=style.average_sentence_length,
        formality=style.formality_level,
        label=style.formality_label,
        structure=style.preferred_structure,
        extra="\n".join(extra) + ("\n" if extra else ""),
    )


def target_content(plan: ExecutionPlan, blocks: list[Block]) -> str:
    if plan.target.block_range:
        start, end = plan.target.block_range
        return blocks_to_markdown(blocks[start : end + 1]) or "N/A"
    if plan.target.section_title:
        return f"Section: {plan.target.section_title}"
    return "N/A"


def build_user_prompt(
    plan: ExecutionPlan,
    perception: Perception,
    blocks: list[Block],
    search: SearchContext | None,
) -> str:
    parts = [
        f"Task: {plan.action.type}",
        "",
        "Target paragraph original content:",
        '"""',
        target_content(plan, blocks),
        '"""',
        "",
        f'User requirement: "{perception.message}"',
    ]
    if plan.suggestions:
        parts += ["", "Planning suggestions:", *plan.suggestions]
    if perception.needs_subheadings:
        parts += ["", "The target section is long and has no subheadings; organize new content under H3 subheadings."]
    if search is not None:
        sources = "\n".join(f"[{i + 1}] {s['title']} - {s['url']}" for i, s in enumerate(search.sources))
        parts += [
            "",
            "Reference materials from search:",
            '"""',
            search.summary,
            "",
            "Sources:",
            sources or "(none)",
            '"""',
        ]
    parts += ["", f"Target length: about {plan.action.estimated_words} words."]
    if perception.style is not None:
        parts.append(
            f"Match the user's style (avg sentence length {perception.style.average_sentence_length} chars, "
            f"formality {perception.style.formality_level}/10)."
        )
    parts += ["", "Please generate the content in JSON format as specified in the system prompt."]
    return "\n".join(parts)


class ContentGenerator:
    def __init__(self, provider: LLMProvider, *, timeout_seconds: float = 60.0, temperature: float = 0.7) -> None:
        self._provider = provider
        self._timeout = timeout_seconds
        self._temperature = temperature

    def generate(
        self,
        plan: ExecutionPlan,
        perception: Perception,
        blocks: list[Block],
        search: SearchContext | None = None,
    ) -> GeneratedContent:
        """Raises LLMError or JSONParseError; the orchestrator turns those into an error reply."""
        raw = self._provider.chat_json(
            system=GENERATION_SYSTEM.format(style=style_guidance(perception.style)),
            user=build_user_prompt(plan, perception, blocks, search),
            timeout_seconds=self._timeout,
            temperature=self._temperature,
        )
        parsed = parse_llm_json(raw, allow_text_only=False)
        if parsed is None:
            raise JSONParseError("Generation returned no JSON object", raw=raw)

        modifications = coerce_modifications(parsed.get("modifications") or [])
        summary = parsed.get("changes_summary") if isinstance(parsed.get("changes_summary"), dict) else {}
        words_added = summary.get("words_added")
        if not isinstance(words_added, (int, float)) or isinstance(words_added, bool):
            words_added = sum(len((m.content or "").split()) for m in modifications)
        reading_time = summary.get("reading_time_increased")
        explanation = parsed.get("explanation")

        logger.info("Generated %d modifications (%d words)", len(modifications), int(words_added))
        return GeneratedContent(
            modifications=modifications,
            explanation=explanation if isinstance(explanation, str) and explanation else "Content generated",
            words_added=int(words_added),
            reading_time_increased=float(reading_time) if isinstance(reading_time, (int, float)) else 0.0,
            raw=parsed,
        )
