"""Tests for applying modifications to block documents."""

from __future__ import annotations

import copy
from datetime import UTC, datetime

from quill.apply import AI_MODIFIED_PROP, BLOCK_ID_PROP, HIGHLIGHT_COLOR, apply_modifications
from quill.blocks import Block, block_text, paragraph
from quill.modifications import Modification

NOW = datetime(2025, 1, 15, 10, 30, tzinfo=UTC)


def _texts(blocks: list[Block]) -> list[str]:
    return [block_text(b) for b in blocks]


class TestApplyModifications:
    def test_update_title(self, sample_blocks: list[Block]) -> None:
        result = apply_modifications(sample_blocks, "Old", [Modification(type="update_title", title="New")])

        assert result.title == "New"
        assert result.blocks == sample_blocks
        assert len(result.applied) == 1

    def test_append_highlights_new_blocks(self, sample_blocks: list[Block]) -> None:
        mod = Modification(type="append", content="## Troubleshooting\n\nRetry the installer.")
        result = apply_modifications(sample_blocks, "T", [mod], now=NOW)

        assert len(result.blocks) == len(sample_blocks) + 2
        added = result.blocks[-2:]
        assert added[0]["type"] == "heading"
        assert added[0]["props"]["level"] == 2
        for block in added:
            assert block["props"]["backgroundColor"] == HIGHLIGHT_COLOR
            assert block["props"][AI_MODIFIED_PROP] == NOW.isoformat()
            assert block["props"][BLOCK_ID_PROP].startswith("ai-")

    def test_no_highlight(self, sample_blocks: list[Block]) -> None:
        mod = Modification(type="append", content="Plain")
        result = apply_modifications(sample_blocks, "T", [mod], highlight=False)
        assert result.blocks[-1] == paragraph("Plain")

    def test_input_is_not_mutated(self, sample_blocks: list[Block]) -> None:
        original = copy.deepcopy(sample_blocks)
        apply_modifications(
            sample_blocks,
            "T",
            [Modification(type="delete", paragraph_index=0), Modification(type="append", content="x")],
        )
        assert sample_blocks == original

    def test_previous_highlights_are_cleared(self) -> None:
        blocks = [
            {
                "type": "paragraph",
                "props": {
                    "backgroundColor": HIGHLIGHT_COLOR,
                    AI_MODIFIED_PROP: "2024-01-01T00:00:00+00:00",
                    BLOCK_ID_PROP: "ai-1-abc",
                    "textAlignment": "left",
                },
                "content": "Earlier edit",
            }
        ]
        result = apply_modifications(blocks, "T", [])
        assert result.blocks[0]["props"] == {"textAlignment": "left"}

    def test_delete_out_of_range_is_skipped(self, sample_blocks: list[Block]) -> None:
        result = apply_modifications(sample_blocks, "T", [Modification(type="delete", paragraph_index=42)])

        assert result.applied == []
        assert len(result.skipped) == 1
        assert result.blocks == sample_blocks

    def test_delete_by_index(self, sample_blocks: list[Block]) -> None:
        result = apply_modifications(sample_blocks, "T", [Modification(type="delete", paragraph_index=1)])
        assert _texts(result.blocks)[:2] == ["Python Guide", "Installation"]

    def test_insert_position_is_clamped(self, sample_blocks: list[Block]) -> None:
        result = apply_modifications(
            sample_blocks,
            "T",
            [Modification(type="insert", position=99, content="Last"), Modification(type="insert", position=0, content="First")],
            highlight=False,
        )
        texts = _texts(result.blocks)
        assert texts[0] == "First"
        assert texts[-1] == "Last"

    def test_replace_paragraph_by_index(self, sample_blocks: list[Block]) -> None:
        mod = Modification(type="replace_paragraph", paragraph_index=3, content="Use the package manager.")
        result = apply_modifications(sample_blocks, "T", [mod], highlight=False)
        assert _texts(result.blocks)[3] == "Use the package manager."
        assert len(result.blocks) == len(sample_blocks)

    def test_replace_paragraph_by_section_title(self, sample_blocks: list[Block]) -> None:
        mod = Modification(type="replace_paragraph", target="installation", content="### Setup\n\nOne step.")
        result = apply_modifications(sample_blocks, "T", [mod], highlight=False)

        texts = _texts(result.blocks)
        assert "Installation" not in texts
        assert texts[2:5] == ["Setup", "One step.", "Basic Syntax"]

    def test_replace_with_unknown_section_is_skipped(self, sample_blocks: list[Block]) -> None:
        mod = Modification(type="replace", target="Deployment", content="x")
        result = apply_modifications(sample_blocks, "T", [mod])
        assert result.skipped == [mod]

    def test_replace_by_numeric_target(self, sample_blocks: list[Block]) -> None:
        mod = Modification(type="replace", target="1", content="Python is fun.")
        result = apply_modifications(sample_blocks, "T", [mod], highlight=False)
        assert _texts(result.blocks)[1] == "Python is fun."

    def test_replace_without_target_replaces_document(self, sample_blocks: list[Block]) -> None:
        mod = Modification(type="replace", content="Only this.")
        result = apply_modifications(sample_blocks, "T", [mod], highlight=False)
        assert result.blocks == [paragraph("Only this.")]

    def test_block_range(self, sample_blocks: list[Block]) -> None:
        mod = Modification(type="replace", block_range=(3, 4), content="Merged step.")
        result = apply_modifications(sample_blocks, "T", [mod], highlight=False)

        assert len(result.blocks) == len(sample_blocks) - 1
        assert _texts(result.blocks)[3] == "Merged step."

    def test_invalid_block_range_is_skipped(self, sample_blocks: list[Block]) -> None:
        mod = Modification(type="replace", block_range=(5, 2), content="x")
        assert apply_modifications(sample_blocks, "T", [mod]).skipped == [mod]
