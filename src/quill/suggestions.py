"""Rule-based writing suggestions for a block document."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Literal

from .blocks import Block, block_text

Severity = Literal["high", "medium", "low"]

SEVERITY_ORDER: dict[str, int] = {"high": 0, "medium": 1, "low": 2}

TRANSITION_WORDS = ("however", "therefore", "moreover", "furthermore", "additionally", "consequently")
EXAMPLE_MARKERS = ("example", "for instance", "such as")

LONG_PARAGRAPH_WORDS = 200
REPEAT_MIN_LENGTH = 4
REPEAT_THRESHOLD = 5
MAX_PARAGRAPHS_WITHOUT_HEADING = 5


@dataclass
class Suggestion:
    type: str
    severity: Severity
    message: str
    location: int
    auto_fix: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity,
            "message": self.message,
            "location": self.location,
            "auto_fix": self.auto_fix,
        }


class SuggestionEngine:
    def analyze(self, blocks: list[Block] | None) -> list[Suggestion]:
        blocks = [b for b in (blocks or []) if isinstance(b, dict)]
        suggestions = [
            *self.detect_long_paragraphs(blocks),
            *self.detect_weak_transitions(blocks),
            *self.detect_repetitive_words(blocks),
            *self.detect_missing_examples(blocks),
            *self.detect_heading_gaps(blocks),
        ]
        # sorted() is stable, so detection order is kept within a severity.
        return sorted(suggestions, key=lambda s: SEVERITY_ORDER[s.severity])

    def detect_long_paragraphs(self, blocks: list[Block]) -> list[Suggestion]:
        found = []
        for index, block in enumerate(blocks):
            if block.get("type") != "paragraph":
                continue
            word_count = len(block_text(block).split())
            if word_count > LONG_PARAGRAPH_WORDS:
                found.append(
                    Suggestion(
                        type="long_paragraph",
                        severity="high",
                        message=(
                            f"Paragraph {index + 1} is too long ({word_count} words). "
                            "Consider breaking it into smaller paragraphs."
                        ),
                        location=index,
                        auto_fix="Split this paragraph into 2-3 shorter paragraphs",
                    )
                )
        return found

    def detect_weak_transitions(self, blocks: list[Block]) -> list[Suggestion]:
        found = []
        for i in range(1, len(blocks)):
            if blocks[i].get("type") != "paragraph" or blocks[i - 1].get("type") != "paragraph":
                continue
            text = block_text(blocks[i]).strip().lower()
            if not text.startswith(TRANSITION_WORDS):
                found.append(
                    Suggestion(
                        type="weak_transition",
                        severity="medium",
                        message=(
                            f"Paragraph {i + 1} lacks a transition word. "
                            "Consider adding one for better flow."
                        ),
                        location=i,
                        auto_fix="Add transition word at the beginning",
                    )
                )
        return found

    def detect_repetitive_words(self, blocks: list[Block]) -> list[Suggestion]:
        text = " ".join(block_text(b) for b in blocks).lower()
        counts = Counter(w for w in text.split() if len(w) > REPEAT_MIN_LENGTH)
        repeated = [(w, c) for w, c in counts.most_common() if c > REPEAT_THRESHOLD][:3]
        return [
            Suggestion(
                type="repetitive",
                severity="low",
                message=f'The word "{word}" appears {count} times. Consider using synonyms.',
                location=0,
            )
            for word, count in repeated
        ]

    def detect_missing_examples(self, blocks: list[Block]) -> list[Suggestion]:
        found = []
        heading_indices = [i for i, b in enumerate(blocks) if b.get("type") == "heading"]
        for n, start in enumerate(heading_indices):
            end = heading_indices[n + 1] if n + 1 < len(heading_indices) else len(blocks)
            section = blocks[start + 1 : end]
            has_example = any(
                marker in block_text(b).lower() for b in section for marker in EXAMPLE_MARKERS
            )
            if not has_example and len(section) > 2:
                found.append(
                    Suggestion(
                        type="missing_example",
                        severity="medium",
                        message=(
                            f'Section "{block_text(blocks[start])}" lacks examples. '
                            "Add concrete examples to illustrate your points."
                        ),
                        location=start,
                        auto_fix="Add an example to this section",
                    )
                )
        return found

    def detect_heading_gaps(self, blocks: list[Block]) -> list[Suggestion]:
        found = []
        since_heading = 0
        for index, block in enumerate(blocks):
            if block.get("type") == "heading":
                since_heading = 0
            elif block.get("type") == "paragraph":
                since_heading += 1
                if since_heading > MAX_PARAGRAPHS_WITHOUT_HEADING:
                    found.append(
                        Suggestion(
                            type="heading_gap",
                            severity="medium",
                            message=(
                                f"Consider adding a subheading after paragraph {index + 1} "
                                "to break up the content."
                            ),
                            location=index,
                            auto_fix="Insert a subheading here",
                        )
                    )
                    since_heading = 0
        return found
