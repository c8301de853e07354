"""Tests for message perception: intent, scope and entities."""

from __future__ import annotations

import pytest

from quill.agent.perception import (
    PerceptionAgent,
    ScopeResult,
    classify_intent,
    detect_scope,
    extract_entities,
    parse_chinese_number,
    should_add_subheadings,
)
from quill.analyzer import DocumentAnalyzer, DocumentStructure
from quill.blocks import Block, heading, paragraph
from quill.style import WritingStyle


@pytest.fixture
def structure(sample_blocks: list[Block]) -> DocumentStructure:
    return DocumentAnalyzer().analyze(sample_blocks)


def _long_section(with_h3: bool) -> DocumentStructure:
    blocks = [heading("Deep Dive"), paragraph(" ".join(["word"] * 310))]
    if with_h3:
        blocks += [heading("Details", 3), paragraph("More.")]
    return DocumentAnalyzer().analyze(blocks)


class TestChineseNumbers:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [("3", 3), ("三", 3), ("十", 10), ("十二", 12), ("abc", 1)],
    )
    def test_parse(self, text: str, expected: int) -> None:
        assert parse_chinese_number(text) == expected


class TestIntent:
    @pytest.mark.parametrize(
        ("message", "intent"),
        [
            ("修改第一段", "modify_content"),
            ("expand the installation section", "add_content"),
            ("delete the intro", "delete_content"),
            ("make it better", "improve_quality"),
            ("please verify the dates", "fact_check"),
            ("how should I start?", "ask_question"),
            ("make it shine", "modify_content"),
        ],
    )
    def test_classify(self, message: str, intent: str) -> None:
        assert classify_intent(message) == intent

    def test_earlier_intents_win(self) -> None:
        assert classify_intent("change and add things") == "modify_content"


class TestScope:
    def test_full_article(self, structure: DocumentStructure) -> None:
        scope = detect_scope("Polish the whole article", structure)
        assert scope == ScopeResult(type="full_article", confidence=1.0, target_titles=["全部"])

    def test_counted_paragraphs_capped_by_h2_count(self, structure: DocumentStructure) -> None:
        scope = detect_scope("修改前三段", structure)
        assert scope.type == "multiple_paragraphs"
        assert scope.confidence == 0.9
        assert scope.target_indices == [0, 1]

    def test_conjunction(self, structure: DocumentStructure) -> None:
        scope = detect_scope("expand installation and basic syntax", structure)
        assert scope.type == "multiple_paragraphs"
        assert scope.confidence == 0.85
        assert scope.target_titles == ["Installation", "Basic Syntax"]

    def test_single_paragraph_keyword(self, structure: DocumentStructure) -> None:
        scope = detect_scope("rewrite this paragraph", structure)
        assert scope.type == "single_paragraph"
        assert scope.confidence == 0.9

    def test_single_title_match(self, structure: DocumentStructure) -> None:
        scope = detect_scope("expand the installation section", structure)
        assert scope.type == "single_paragraph"
        assert scope.confidence == 0.8
        assert scope.target_titles == ["Installation"]

    def test_unknown(self, structure: DocumentStructure) -> None:
        scope = detect_scope("make it shine", structure)
        assert scope.type == "unknown"
        assert scope.confidence == 0.5


class TestEntities:
    def test_extract(self, structure: DocumentStructure) -> None:
        entities = extract_entities("Please expand the installation section", structure)

        assert entities.action_type == "expand"
        assert entities.target_section == "Installation"
        assert entities.keywords == ["Please", "expand", "the", "installation", "section"]

    def test_rewrite_without_target(self, structure: DocumentStructure) -> None:
        entities = extract_entities("重写", structure)
        assert entities.action_type == "rewrite"
        assert entities.target_section is None


class TestSubheadings:
    def test_long_section_without_h3(self) -> None:
        structure = _long_section(with_h3=False)
        scope = detect_scope("expand the deep dive section", structure)
        assert should_add_subheadings(scope, structure)

    def test_section_with_h3(self) -> None:
        structure = _long_section(with_h3=True)
        scope = detect_scope("expand the deep dive section", structure)
        assert not should_add_subheadings(scope, structure)

    def test_short_section(self, structure: DocumentStructure) -> None:
        scope = detect_scope("expand the installation section", structure)
        assert not should_add_subheadings(scope, structure)


class TestPerceptionAgent:
    def test_perceive(self, sample_blocks: list[Block]) -> None:
        style = WritingStyle(formality_level=8)
        perception = PerceptionAgent().perceive("expand the installation section", sample_blocks, style=style)

        assert perception.intent == "add_content"
        assert perception.confidence == 0.8
        assert perception.style is style
        data = perception.to_dict()
        assert data["paragraph_analysis"]["target_paragraph_titles"] == ["Installation"]
        assert data["paragraph_analysis"]["needs_subheadings"] is False
        assert data["stats"]["total_words"] == 38

    def test_uses_given_structure(self, structure: DocumentStructure) -> None:
        perception = PerceptionAgent().perceive("make it shine", None, structure=structure)
        assert perception.structure is structure
