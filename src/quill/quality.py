"""Heuristic quality scoring for English-language posts.

Three 0-100 sub-scores (structure, content, readability) each start at 100
and lose points per detected issue; overall is their rounded mean.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .blocks import Block, block_text

MIN_WORDS = 300
_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_SYLLABLE_SUFFIX = re.compile(r"(?:[^laeiouy]es|ed|[^laeiouy]e)$")
_VOWEL_GROUP = re.compile(r"[aeiouy]{1,2}")


@dataclass
class ScoreDetail:
    score: int
    issues: list[str] = field(default_factory=list)


@dataclass
class QualityScore:
    overall: int
    structure: ScoreDetail
    content: ScoreDetail
    readability: ScoreDetail

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "structure": self.structure.score,
            "content": self.content.score,
            "readability": self.readability.score,
            "details": {
                "structure_issues": self.structure.issues,
                "content_issues": self.content.issues,
                "readability_issues": self.readability.issues,
            },
        }


def count_syllables(word: str) -> int:
    word = word.lower()
    if len(word) <= 3:
        return 1
    word = _SYLLABLE_SUFFIX.sub("", word)
    if word.startswith("y"):
        word = word[1:]
    matches = _VOWEL_GROUP.findall(word)
    return len(matches) if matches else 1


def flesch_reading_ease(avg_sentence_length: float, syllables: int, words: int) -> float:
    return 206.835 - 1.015 * avg_sentence_length - 84.6 * (syllables / words)


class QualityAnalyzer:
    def analyze(self, blocks: list[Block] | None, title: str = "") -> QualityScore:
        blocks = [b for b in (blocks or []) if isinstance(b, dict)]
        text = " ".join(block_text(b) for b in blocks)
        structure = self.analyze_structure(blocks)
        content = self.analyze_content(text)
        readability = self.analyze_readability(text)
        overall = round((structure.score + content.score + readability.score) / 3)
        return QualityScore(overall=overall, structure=structure, content=content, readability=readability)

    def analyze_structure(self, blocks: list[Block]) -> ScoreDetail:
        detail = ScoreDetail(score=100)
        if not any(b.get("type") == "heading" for b in blocks):
            detail.issues.append("No headings found - add section headings")
            detail.score -= 20
        if sum(1 for b in blocks if b.get("type") == "paragraph") < 3:
            detail.issues.append("Too few paragraphs - expand content")
            detail.score -= 15
        if len(blocks) < 5:
            detail.issues.append("Article too short - add more content")
            detail.score -= 25
        detail.score = max(0, detail.score)
        return detail

    def analyze_content(self, text: str) -> ScoreDetail:
        detail = ScoreDetail(score=100)
        words = text.split()
        if len(words) < MIN_WORDS:
            detail.issues.append(f"Word count too low ({len(words)}/{MIN_WORDS}) - add more detail")
            detail.score -= 30
        if words and sum(len(w) for w in words) / len(words) < 4:
            detail.issues.append("Words too simple - use more descriptive language")
            detail.score -= 10
        sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
        if len(sentences) < 5:
            detail.issues.append("Too few sentences - expand your ideas")
            detail.score -= 15
        detail.score = max(0, detail.score)
        return detail

    def analyze_readability(self, text: str) -> ScoreDetail:
        sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
        words = text.split()
        if not sentences or not words:
            return ScoreDetail(score=0, issues=["No content to analyze"])

        detail = ScoreDetail(score=100)
        avg_sentence_length = len(words) / len(sentences)
        if avg_sentence_length > 25:
            detail.issues.append("Sentences too long - break into shorter sentences")
            detail.score -= 20

        syllables = sum(count_syllables(w) for w in words)
        if flesch_reading_ease(avg_sentence_length, syllables, len(words)) < 60:
            detail.issues.append("Text difficult to read - simplify language")
            detail.score -= 15
        detail.score = max(0, detail.score)
        return detail
