"""Writing-style profile derived from a user's recent posts.

The profile is injected into the generation prompt so new content matches
how the user already writes.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any

from .blocks import Block, block_text

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT = re.compile(r"[。！？.!?]+")
_CJK_PHRASE = re.compile(r"[一-龥]{2,3}")
_TECHNICAL = re.compile(r"[A-Za-z0-9]+")

FORMAL_INDICATORS = (
    "因此", "然而", "此外", "综上所述", "鉴于", "基于", "根据", "显示", "表明",
    "therefore", "however", "furthermore", "moreover", "consequently",
)
INFORMAL_INDICATORS = (
    "哈哈", "嘿", "哇", "呀", "啊", "吧", "呢",
    "hey", "wow", "lol", "gonna", "awesome",
)
EXAMPLE_INDICATORS = ("例如", "比如", "举例", "例子", "如：", "如下", "for example", "for instance", "e.g.")

STRUCTURED = "structured"
LIST_HEAVY = "list-heavy"
HEADING_HEAVY = "heading-heavy"
PARAGRAPH_FOCUSED = "paragraph-focused"


@dataclass
class WritingStyle:
    average_sentence_length: int = 25
    formality_level: int = 5
    preferred_structure: str = PARAGRAPH_FOCUSED
    common_phrases: list[str] = field(default_factory=list)
    technical_term_density: int = 10
    use_of_examples: bool = False

    @property
    def formality_label(self) -> str:
        if self.formality_level > 7:
            return "Formal"
        if self.formality_level > 4:
            return "Neutral"
        return "Casual"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def average_sentence_length(sentences: list[str]) -> int:
    """Mean sentence length in characters (CJK text has no word breaks)."""
    if not sentences:
        return 20
    return round(sum(len(s) for s in sentences) / len(sentences))


def _count(text: str, needles: tuple[str, ...]) -> int:
    lower = text.lower()
    return sum(lower.count(n) for n in needles)


def detect_formality(text: str) -> int:
    """Formality on a 0-10 scale; 5 when no indicator words appear."""
    formal = _count(text, FORMAL_INDICATORS)
    informal = _count(text, INFORMAL_INDICATORS)
    total = formal + informal
    if total == 0:
        return 5
    return round(formal / total * 10)


def extract_common_phrases(text: str, limit: int = 5) -> list[str]:
    counts = Counter(_CJK_PHRASE.findall(text))
    return [phrase for phrase, _ in counts.most_common(limit)]


def technical_term_density(text: str) -> int:
    """Share of characters that are latin letters or digits, as a percentage."""
    if not text:
        return 0
    technical = sum(len(m) for m in _TECHNICAL.findall(text))
    return round(technical / len(text) * 100)


def uses_examples(text: str) -> bool:
    lower = text.lower()
    return any(marker in lower for marker in EXAMPLE_INDICATORS)


def detect_structure_pattern(posts: list[list[Block]]) -> str:
    serialized = [json.dumps(p, ensure_ascii=False) for p in posts]
    has_lists = any('"bulletListItem"' in s or '"numberedListItem"' in s for s in serialized)
    has_headings = any('"heading"' in s for s in serialized)
    if has_lists and has_headings:
        return STRUCTURED
    if has_lists:
        return LIST_HEAVY
    if has_headings:
        return HEADING_HEAVY
    return PARAGRAPH_FOCUSED


def analyze_writing_style(posts: list[list[Block]]) -> WritingStyle:
    """Profile a user's writing from the blocks of their recent posts.

    An empty history yields the neutral default profile.
    """
    all_text = " ".join(
        block_text(b) for post in posts for b in (post or []) if isinstance(b, dict)
    ).strip()
    if not all_text:
        logger.debug("No prior posts for style analysis, using default style")
        return WritingStyle()

    return WritingStyle(
        average_sentence_length=average_sentence_length(split_sentences(all_text)),
        formality_level=detect_formality(all_text),
        preferred_structure=detect_structure_pattern(posts),
        common_phrases=extract_common_phrases(all_text),
        technical_term_density=technical_term_density(all_text),
        use_of_examples=uses_examples(all_text),
    )
