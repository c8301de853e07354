"""SEO checks: title length, heading coverage and main keyword density."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from quill.blocks import Block, block_text, heading_level, is_heading

TITLE_MIN = 30
TITLE_MAX = 60
MIN_HEADINGS = 3

_KEYWORD = re.compile(r"[一-龥]{2,}|[A-Za-z][A-Za-z0-9-]{3,}")


@dataclass
class SEOAnalysis:
    title_length: int
    title_optimal: bool
    has_h2: bool
    heading_count: int
    keyword: str | None
    keyword_density: float
    overall_score: int
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": {
                "length": self.title_length,
                "optimal": self.title_optimal,
                "suggestion": (
                    f"Title too short, recommended {TITLE_MIN}-{TITLE_MAX} characters"
                    if self.title_length < TITLE_MIN
                    else None
                ),
            },
            "headings": {
                "has_h2": self.has_h2,
                "count": self.heading_count,
                "suggestion": None if self.has_h2 else "Missing H2 subheadings, affects SEO",
            },
            "keywords": {"keyword": self.keyword, "density": self.keyword_density},
            "overall_score": self.overall_score,
            "suggestions": self.suggestions,
        }


def main_keyword(title: str) -> str | None:
    match = _KEYWORD.search(title or "")
    return match.group(0) if match else None


def keyword_density(text: str, keyword: str | None) -> float:
    """Percentage of the text's characters covered by the keyword."""
    if not keyword or not text:
        return 0.0
    occurrences = text.lower().count(keyword.lower())
    return round(occurrences * len(keyword) / len(text) * 100, 2)


def check_seo(blocks: list[Block] | None, title: str) -> SEOAnalysis:
    blocks = [b for b in (blocks or []) if isinstance(b, dict)]
    title = title or ""
    title_length = len(title)
    title_optimal = TITLE_MIN <= title_length <= TITLE_MAX

    has_h2 = any(is_heading(b, 2) for b in blocks)
    heading_count = sum(1 for b in blocks if is_heading(b) and heading_level(b) in (2, 3))

    keyword = main_keyword(title)
    density = keyword_density(" ".join(block_text(b) for b in blocks), keyword)

    score = 0
    if title_optimal:
        score += 4
    elif title_length > 0:
        score += 2
    if has_h2:
        score += 3
    if heading_count >= MIN_HEADINGS:
        score += 2
    if 1 < density < 5:
        score += 1

    suggestions: list[str] = []
    if not title_optimal:
        suggestions.append(f"Adjust the title to {TITLE_MIN}-{TITLE_MAX} characters (currently {title_length})")
    if not has_h2:
        suggestions.append("Add H2 subheadings to structure the article")
    elif heading_count < MIN_HEADINGS:
        suggestions.append(f"Use at least {MIN_HEADINGS} H2/H3 headings")
    if keyword and density <= 1:
        suggestions.append(f'Mention the main keyword "{keyword}" more often in the body')

    return SEOAnalysis(
        title_length=title_length,
        title_optimal=title_optimal,
        has_h2=has_h2,
        heading_count=heading_count,
        keyword=keyword,
        keyword_density=density,
        overall_score=score,
        suggestions=suggestions,
    )
