"""Stage 1: understand what the user wants and where in the document.

Everything here is keyword and title matching; no LLM is involved, so the
result is deterministic for a given message and document.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Literal

from quill.analyzer import DocumentAnalyzer, DocumentStructure, h2_sections, has_subheadings
from quill.blocks import Block
from quill.style import WritingStyle

Intent = Literal[
    "modify_content",
    "add_content",
    "delete_content",
    "improve_quality",
    "fact_check",
    "ask_question",
]
Scope = Literal["single_paragraph", "multiple_paragraphs", "full_article", "unknown"]
ActionHint = Literal["expand", "rewrite", "correct"]

INTENT_KEYWORDS: list[tuple[Intent, tuple[str, ...]]] = [
    ("modify_content", ("修改", "改", "modify", "change", "edit", "调整")),
    ("add_content", ("添加", "加", "增加", "扩充", "add", "expand", "append", "补充")),
    ("delete_content", ("删除", "删", "移除", "delete", "remove")),
    ("improve_quality", ("优化", "提升", "改进", "improve", "enhance", "better", "完善")),
    ("fact_check", ("核查", "检查", "验证", "check", "verify", "factcheck")),
    ("ask_question", ("建议", "怎么", "如何", "suggest", "how", "what", "?", "？")),
]

FULL_ARTICLE_KEYWORDS = (
    "整个文章", "整篇文章", "全文", "整体", "所有段落",
    "whole article", "entire article", "all paragraphs", "full article",
)
SINGLE_PARAGRAPH_KEYWORDS = ("这一段", "这段", "该段落", "this paragraph", "this section")
CONJUNCTIONS = ("和", "与", "以及", "and", ",", "、")
SUBHEADING_WORD_THRESHOLD = 300
MAX_KEYWORDS = 5

_COUNTED = re.compile(r"(前|后)?\s*([一二三四五六七八九十\d]+)\s*(个)?\s*(段落|段|章节)")
_CONJUNCTION_SPLIT = re.compile(r"以及|\band\b|[和与,、]")
_KEYWORD_SPLIT = re.compile(r"[\s,。、]+")
_CHINESE_DIGITS = {"一": 1, "二": 2, "三": 3, "四": 4, "五": 5, "六": 6, "七": 7, "八": 8, "九": 9, "十": 10}


@dataclass
class ScopeResult:
    type: Scope
    confidence: float
    target_titles: list[str] = field(default_factory=list)
    target_indices: list[int] = field(default_factory=list)


@dataclass
class Entities:
    keywords: list[str]
    target_section: str | None = None
    action_type: ActionHint | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "keywords": self.keywords,
            "target_section": self.target_section,
            "action_type": self.action_type,
        }


@dataclass
class Perception:
    message: str
    intent: Intent
    confidence: float
    structure: DocumentStructure
    entities: Entities
    scope: ScopeResult
    needs_subheadings: bool = False
    style: WritingStyle | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent,
            "confidence": self.confidence,
            "entities": self.entities.to_dict(),
            "paragraph_analysis": {
                "scope": self.scope.type,
                "target_paragraph_titles": self.scope.target_titles,
                "target_paragraph_indices": self.scope.target_indices,
                "needs_subheadings": self.needs_subheadings,
            },
            "stats": self.structure.stats.to_dict(),
        }


def parse_chinese_number(text: str) -> int:
    """Parse 1-19 written as digits, 一..十 or 十X. Unparseable input counts as 1."""
    if text.isdigit():
        return int(text)
    if text in _CHINESE_DIGITS:
        return _CHINESE_DIGITS[text]
    if text.startswith("十"):
        return 10 + _CHINESE_DIGITS.get(text[1:], 0)
    return 1


def classify_intent(message: str) -> Intent:
    lower = message.lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(k in lower for k in keywords):
            return intent
    return "modify_content"


def match_paragraphs(message: str, structure: DocumentStructure) -> list[str]:
    """H2 titles referenced by the message, in document order."""
    lower = message.lower().strip()
    msg_words = [w for w in lower.split() if len(w) > 2]
    matches: list[str] = []

    for section in h2_sections(structure):
        title = section.title or ""
        lower_title = title.lower()
        if not lower_title:
            continue
        if lower_title in lower:
            matches.append(title)
            continue
        if len(lower) > 2 and lower in lower_title:
            matches.append(title)
            continue

        title_words = [w for w in lower_title.split() if len(w) > 2]
        if not title_words or not msg_words:
            continue
        hits = sum(1 for tw in title_words if any(tw in mw or mw in tw for mw in msg_words))
        threshold = max(1, min(2, math.ceil(len(title_words) * 0.5)))
        if hits >= threshold:
            matches.append(title)

    return matches


def match_multiple_paragraphs(message: str, structure: DocumentStructure) -> list[str]:
    matches: list[str] = []
    for part in _CONJUNCTION_SPLIT.split(message.lower()):
        for title in match_paragraphs(part.strip(), structure):
            if title not in matches:
                matches.append(title)
    return matches


def detect_scope(message: str, structure: DocumentStructure) -> ScopeResult:
    lower = message.lower()

    if any(k in lower for k in FULL_ARTICLE_KEYWORDS):
        return ScopeResult(type="full_article", confidence=1.0, target_titles=["全部"])

    counted = _COUNTED.search(lower)
    if counted:
        count = parse_chinese_number(counted.group(2))
        available = len(h2_sections(structure))
        return ScopeResult(
            type="multiple_paragraphs",
            confidence=0.9,
            target_indices=list(range(min(count, available))),
        )

    if any(c in lower for c in CONJUNCTIONS):
        titles = match_multiple_paragraphs(lower, structure)
        if len(titles) > 1:
            return ScopeResult(type="multiple_paragraphs", confidence=0.85, target_titles=titles)

    if any(k in lower for k in SINGLE_PARAGRAPH_KEYWORDS):
        return ScopeResult(type="single_paragraph", confidence=0.9)

    titles = match_paragraphs(lower, structure)
    if len(titles) == 1:
        return ScopeResult(type="single_paragraph", confidence=0.8, target_titles=titles)
    if len(titles) > 1:
        return ScopeResult(type="multiple_paragraphs", confidence=0.7, target_titles=titles)
    return ScopeResult(type="unknown", confidence=0.5)


def extract_entities(message: str, structure: DocumentStructure) -> Entities:
    lower = message.lower()
    action: ActionHint | None = None
    if "扩充" in lower or "expand" in lower:
        action = "expand"
    elif "重写" in lower or "rewrite" in lower:
        action = "rewrite"
    elif "纠正" in lower or "correct" in lower:
        action = "correct"

    keywords = [w for w in _KEYWORD_SPLIT.split(message) if len(w) > 1][:MAX_KEYWORDS]
    titles = match_paragraphs(lower, structure)
    return Entities(keywords=keywords, target_section=titles[0] if titles else None, action_type=action)


def should_add_subheadings(scope: ScopeResult, structure: DocumentStructure) -> bool:
    """A long single H2 section without any H3 benefits from subheadings."""
    if scope.type != "single_paragraph" or not scope.target_titles:
        return False
    target = scope.target_titles[0]
    for section in h2_sections(structure):
        if section.title == target:
            return not has_subheadings(structure, section) and section.word_count > SUBHEADING_WORD_THRESHOLD
    return False


class PerceptionAgent:
    def __init__(self, analyzer: DocumentAnalyzer | None = None) -> None:
        self._analyzer = analyzer or DocumentAnalyzer()

    def perceive(
        self,
        message: str,
        blocks: list[Block] | None,
        structure: DocumentStructure | None = None,
        style: WritingStyle | None = None,
    ) -> Perception:
        """Analyze the message against the document.

        A precomputed (cached) structure is used as-is when given.
        """
        structure = structure or self._analyzer.analyze(blocks)
        scope = detect_scope(message, structure)
        return Perception(
            message=message,
            intent=classify_intent(message),
            confidence=scope.confidence,
            structure=structure,
            entities=extract_entities(message, structure),
            scope=scope,
            needs_subheadings=should_add_subheadings(scope, structure),
            style=style,
        )
