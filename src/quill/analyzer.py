"""Structural analysis of block documents.

Produces a heading outline (tree), flat sections (heading + the blocks up
to the next heading), and document statistics.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from .blocks import Block, block_text, count_words, heading_level

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


@dataclass
class OutlineNode:
    """A heading in the document outline."""

    id: str
    level: int
    title: str
    block_index: int
    children: list["OutlineNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "title": self.title,
            "block_index": self.block_index,
            "children": [c.to_dict() for c in self.children],
        }


@dataclass
class Section:
    """A heading and the blocks that follow it, up to the next heading."""

    id: str
    heading: OutlineNode | None
    content: list[Block]
    word_count: int
    start_index: int
    end_index: int

    @property
    def title(self) -> str | None:
        return self.heading.title if self.heading else None

    @property
    def level(self) -> int | None:
        return self.heading.level if self.heading else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "heading": (
                {"level": self.heading.level, "title": self.heading.title}
                if self.heading
                else None
            ),
            "word_count": self.word_count,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "block_count": len(self.content),
        }


@dataclass
class DocumentStats:
    total_words: int = 0
    total_paragraphs: int = 0
    total_headings: int = 0
    reading_time_minutes: int = 0
    average_sentence_length: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_words": self.total_words,
            "total_paragraphs": self.total_paragraphs,
            "total_headings": self.total_headings,
            "reading_time_minutes": self.reading_time_minutes,
            "average_sentence_length": self.average_sentence_length,
        }


@dataclass
class DocumentStructure:
    outline: list[OutlineNode]
    sections: list[Section]
    stats: DocumentStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "outline": [n.to_dict() for n in self.outline],
            "sections": [s.to_dict() for s in self.sections],
            "stats": self.stats.to_dict(),
        }


class DocumentAnalyzer:
    """Builds a DocumentStructure from a list of blocks."""

    def analyze(self, blocks: list[Block] | None) -> DocumentStructure:
        blocks = [b for b in (blocks or []) if isinstance(b, dict)]
        outline = self.build_outline(blocks)
        sections = self.extract_sections(blocks, outline)
        stats = self.calculate_stats(blocks)
        logger.debug(
            "Analyzed document: %d blocks, %d sections, %d words",
            len(blocks),
            len(sections),
            stats.total_words,
        )
        return DocumentStructure(outline=outline, sections=sections, stats=stats)

    def build_outline(self, blocks: list[Block]) -> list[OutlineNode]:
        """Nest headings by level using a stack of open ancestors."""
        outline: list[OutlineNode] = []
        stack: list[OutlineNode] = []

        for index, block in enumerate(blocks):
            if block.get("type") != "heading":
                continue
            node = OutlineNode(
                id=f"heading-{index}",
                level=heading_level(block),
                title=block_text(block),
                block_index=index,
            )
            while stack and stack[-1].level >= node.level:
                stack.pop()
            if stack:
                stack[-1].children.append(node)
            else:
                outline.append(node)
            stack.append(node)

        return outline

    def extract_sections(self, blocks: list[Block], outline: list[OutlineNode]) -> list[Section]:
        headings = sorted(flatten_outline(outline), key=lambda n: n.block_index)

        if not headings:
            text = " ".join(block_text(b) for b in blocks)
            return [
                Section(
                    id="section-0",
                    heading=None,
                    content=list(blocks),
                    word_count=count_words(text),
                    start_index=0,
                    end_index=max(len(blocks) - 1, 0),
                )
            ]

        sections: list[Section] = []
        for i, node in enumerate(headings):
            start = node.block_index
            end = headings[i + 1].block_index if i + 1 < len(headings) else len(blocks)
            content = blocks[start + 1 : end]
            text = " ".join(block_text(b) for b in content)
            sections.append(
                Section(
                    id=f"section-{i}",
                    heading=node,
                    content=content,
                    word_count=count_words(text),
                    start_index=start,
                    end_index=end - 1,
                )
            )
        return sections

    def calculate_stats(self, blocks: list[Block]) -> DocumentStats:
        text = " ".join(block_text(b) for b in blocks)
        words = count_words(text)
        sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
        return DocumentStats(
            total_words=words,
            total_paragraphs=sum(1 for b in blocks if b.get("type") == "paragraph"),
            total_headings=sum(1 for b in blocks if b.get("type") == "heading"),
            reading_time_minutes=math.ceil(words / WORDS_PER_MINUTE),
            average_sentence_length=round(words / len(sentences)) if sentences else 0,
        )


def flatten_outline(outline: list[OutlineNode]) -> list[OutlineNode]:
    flat: list[OutlineNode] = []
    for node in outline:
        flat.append(node)
        flat.extend(flatten_outline(node.children))
    return flat


def find_section_by_title(structure: DocumentStructure, title: str) -> Section | None:
    """Case-insensitive substring match against section headings."""
    needle = title.strip().lower()
    if not needle:
        return None
    for section in structure.sections:
        if section.title and needle in section.title.lower():
            return section
    return None


def h2_sections(structure: DocumentStructure) -> list[Section]:
    return [s for s in structure.sections if s.level == 2]


def has_subheadings(structure: DocumentStructure, section: Section) -> bool:
    """True when an H3 sits between this H2 and the next H2."""
    if section.heading is None:
        return False
    for node in flatten_outline(structure.outline):
        if node.block_index == section.heading.block_index:
            return any(child.level == 3 for child in node.children)
    return False
