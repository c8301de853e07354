"""Rearrange a post's paragraphs under a template's headings.

Existing headings are dropped; paragraphs keep their order and are
distributed over the template's sections.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import Literal, get_args

from .blocks import Block, heading, paragraph

ArticleTemplate = Literal["academic", "blog", "tutorial", "story"]
TEMPLATES: tuple[str, ...] = get_args(ArticleTemplate)


def _paragraphs(blocks: list[Block]) -> list[Block]:
    return [b for b in blocks if b.get("type") == "paragraph"]


def to_academic(blocks: list[Block]) -> list[Block]:
    paras = _paragraphs(blocks)
    return [
        heading("Abstract", 1),
        paragraph("This article presents..."),
        heading("Introduction"),
        *paras[:2],
        heading("Methodology"),
        paragraph("The approach used in this study..."),
        heading("Results"),
        *paras[2:],
        heading("Conclusion"),
        paragraph("In conclusion..."),
    ]


def to_blog(blocks: list[Block]) -> list[Block]:
    paras = _paragraphs(blocks)
    result = [heading("Introduction"), paragraph("Hey there! Let me share...")]
    for i in range(math.ceil(len(paras) / 3)):
        result.append(heading(f"Point {i + 1}"))
        result.extend(paras[i * 3 : (i + 1) * 3])
    result += [heading("Wrapping Up"), paragraph("Thanks for reading!")]
    return result


def to_tutorial(blocks: list[Block]) -> list[Block]:
    result = [
        heading("What You'll Learn"),
        paragraph("In this tutorial, you will learn..."),
        heading("Prerequisites"),
        paragraph("Before starting, make sure you have..."),
    ]
    for i, para in enumerate(_paragraphs(blocks)):
        result += [heading(f"Step {i + 1}"), para]
    result += [heading("Next Steps"), paragraph("Now that you've completed this tutorial...")]
    return result


def to_story(blocks: list[Block]) -> list[Block]:
    paras = _paragraphs(blocks)
    first = math.ceil(len(paras) / 3)
    second = math.ceil(len(paras) * 2 / 3)
    return [
        heading("The Beginning"),
        *paras[:first],
        heading("The Journey"),
        *paras[first:second],
        heading("The Resolution"),
        *paras[second:],
    ]


_BUILDERS: dict[str, Callable[[list[Block]], list[Block]]] = {
    "academic": to_academic,
    "blog": to_blog,
    "tutorial": to_tutorial,
    "story": to_story,
}


class RestructuringEngine:
    def restructure(self, blocks: list[Block] | None, template: str) -> list[Block]:
        """Unknown templates return the blocks unchanged."""
        blocks = [b for b in (blocks or []) if isinstance(b, dict)]
        builder = _BUILDERS.get(template)
        return builder(blocks) if builder else blocks
