"""Readability grading that works for both CJK and latin text.

Sentence length is measured in characters, and "jargon" is approximated as
the share of latin letters and digits in the text.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from quill.style import split_sentences, technical_term_density

Grade = Literal["easy", "medium", "hard"]


@dataclass
class ReadabilityAnalysis:
    average_sentence_length: int
    grade: Grade
    complex_word_percentage: int
    suggestions: list[str] = field(default_factory=list)
    overall_score: int = 10

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _grade(avg_length: int) -> Grade:
    if avg_length < 20:
        return "easy"
    if avg_length < 30:
        return "medium"
    return "hard"


def analyze_readability(text: str) -> ReadabilityAnalysis:
    sentences = split_sentences(text)
    avg_length = round(sum(len(s) for s in sentences) / len(sentences)) if sentences else 0
    complex_words = technical_term_density(text)

    suggestions: list[str] = []
    if avg_length > 35:
        suggestions.append("部分句子过长，建议分段")
    if complex_words > 20:
        suggestions.append("专业术语较多，建议添加注释")

    score = 10
    if avg_length > 30:
        score -= 2
    if avg_length > 40:
        score -= 2
    if complex_words > 20:
        score -= 2
    if complex_words > 30:
        score -= 2

    return ReadabilityAnalysis(
        average_sentence_length=avg_length,
        grade=_grade(avg_length),
        complex_word_percentage=complex_words,
        suggestions=suggestions,
        overall_score=max(1, score),
    )
