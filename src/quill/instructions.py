"""Resolve instructions that refer back to earlier assistant suggestions.

"Apply your suggestions" is not actionable by itself; when the user says
something like that, the last few assistant messages are handed to the LLM
to turn into a concrete edit instruction.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .errors import JSONParseError
from .json_repair import parse_llm_json
from .providers.base import LLMError, LLMProvider
from .stream import plain_text

logger = logging.getLogger(__name__)

REFERENCE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"根据.*?建议",
        r"按照.*?建议",
        r"应用.*?建议",
        r"执行.*?建议",
        r"follow.*?suggest",
        r"apply.*?suggest",
        r"based on.*?suggest",
        r"according to.*?suggest",
    )
]

RECENT_ASSISTANT_MESSAGES = 3

EXTRACTION_SYSTEM = "You are an instruction extraction expert. Always respond with a JSON object."

EXTRACTION_TEMPLATE = """The user previously received suggestions from an AI assistant. Now they want to APPLY those suggestions by modifying the article.

Previous AI suggestions:
{suggestions}

Current article title: {title}

User's request: "{instruction}"

Convert the suggestions into SPECIFIC, ACTIONABLE modification instructions.
- Do not just repeat the suggestions or give advice.
- Say WHAT content to add or modify and WHERE.
- Include section titles when creating new sections and the key facts to include.
- Use the same language as the suggestions.

Respond with JSON: {{"extracted_instruction": "..."}}"""


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" or "assistant"
    content: str


def references_previous_suggestions(instruction: str) -> bool:
    return any(p.search(instruction) for p in REFERENCE_PATTERNS)


def extract_smart_instruction(
    provider: LLMProvider | None,
    instruction: str,
    history: list[ChatMessage] | None,
    *,
    title: str = "Untitled",
    timeout_seconds: float = 60.0,
) -> str:
    """Return a concrete instruction, or the original one when nothing better is found."""
    instruction = instruction.strip()
    if provider is None or not history or not references_previous_suggestions(instruction):
        return instruction

    recent = [plain_text(m.content) for m in history if m.role == "assistant"][-RECENT_ASSISTANT_MESSAGES:]
    suggestions = "\n\n".join(c for c in recent if c.strip())
    if not suggestions:
        logger.info("Instruction references suggestions but history has no assistant messages")
        return instruction

    prompt = EXTRACTION_TEMPLATE.format(suggestions=suggestions, title=title, instruction=instruction)
    try:
        raw = provider.chat_json(
            system=EXTRACTION_SYSTEM,
            user=prompt,
            timeout_seconds=timeout_seconds,
            temperature=0.3,
        )
        parsed = parse_llm_json(raw, allow_text_only=False)
    except (LLMError, JSONParseError) as e:
        logger.warning("Instruction extraction failed, using original: %s", e)
        return instruction

    extracted = (parsed or {}).get("extracted_instruction")
    if isinstance(extracted, str) and extracted.strip():
        logger.info("Smart instruction: %.120s", extracted.strip())
        return extracted.strip()
    return instruction
