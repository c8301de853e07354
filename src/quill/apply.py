"""Apply Modifications to a block document.

New blocks are highlighted (yellow background plus a data-ai-modified
timestamp) so the editor can show what the assistant changed; highlights
from a previous round are cleared first. The input list is never mutated.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .analyzer import DocumentAnalyzer, find_section_by_title
from .blocks import Block, new_block_id, string_to_blocks
from .modifications import Modification

logger = logging.getLogger(__name__)

HIGHLIGHT_COLOR = "yellow"
AI_MODIFIED_PROP = "data-ai-modified"
BLOCK_ID_PROP = "data-block-id"


@dataclass
class ApplyResult:
    blocks: list[Block]
    title: str
    applied: list[Modification] = field(default_factory=list)
    skipped: list[Modification] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "blocks": self.blocks,
            "title": self.title,
            "applied": [m.to_dict() for m in self.applied],
            "skipped": [m.to_dict() for m in self.skipped],
        }


def clear_highlights(blocks: list[Block]) -> list[Block]:
    cleaned: list[Block] = []
    for block in blocks:
        block = copy.deepcopy(block)
        props = block.get("props")
        if isinstance(props, dict) and (AI_MODIFIED_PROP in props or props.get("backgroundColor") == HIGHLIGHT_COLOR):
            props.pop(AI_MODIFIED_PROP, None)
            props.pop(BLOCK_ID_PROP, None)
            if props.get("backgroundColor") == HIGHLIGHT_COLOR:
                props.pop("backgroundColor")
        cleaned.append(block)
    return cleaned


def mark_highlighted(blocks: list[Block], *, now: datetime | None = None) -> list[Block]:
    now = now or datetime.now(UTC)
    stamp = now.isoformat()
    ms = int(now.timestamp() * 1000)
    marked: list[Block] = []
    for block in blocks:
        props = dict(block.get("props") or {})
        props["backgroundColor"] = HIGHLIGHT_COLOR
        props[AI_MODIFIED_PROP] = stamp
        props[BLOCK_ID_PROP] = new_block_id(ms)
        marked.append({**block, "props": props})
    return marked


def _index_from(mod: Modification, *fields: str) -> int | None:
    for name in fields:
        value = getattr(mod, name)
        if value is not None:
            return int(value)
    if mod.target is not None:
        try:
            return int(mod.target)
        except ValueError:
            return None
    return None


def apply_modifications(
    blocks: list[Block] | None,
    title: str,
    modifications: list[Modification],
    *,
    highlight: bool = True,
    now: datetime | None = None,
) -> ApplyResult:
    """Apply modifications in order and return the new document."""
    current = clear_highlights(list(blocks or []))
    result = ApplyResult(blocks=current, title=title)

    for mod in modifications:
        new_blocks = string_to_blocks(mod.content)
        if highlight:
            new_blocks = mark_highlighted(new_blocks, now=now)

        if _apply_one(result, mod, new_blocks):
            result.applied.append(mod)
        else:
            logger.info("Skipped modification %s", mod.to_dict())
            result.skipped.append(mod)

    return result


def _apply_one(result: ApplyResult, mod: Modification, new_blocks: list[Block]) -> bool:
    blocks = result.blocks
    kind = mod.type

    if kind == "update_title":
        if not mod.title:
            return False
        result.title = mod.title
        return True

    if kind in ("append", "add_section"):
        if not new_blocks:
            return False
        blocks.extend(new_blocks)
        return True

    if mod.block_range is not None and kind in ("replace", "replace_paragraph"):
        start, end = mod.block_range
        if not (0 <= start <= end < len(blocks)) or not new_blocks:
            return False
        blocks[start : end + 1] = new_blocks
        return True

    if kind == "replace":
        if not new_blocks:
            return False
        index = _index_from(mod)
        if index is None and mod.target:
            return _replace_section(blocks, mod.target, new_blocks)
        if index is None:
            blocks[:] = new_blocks
            return True
        if not 0 <= index < len(blocks):
            return False
        blocks[index : index + 1] = new_blocks
        return True

    if kind == "insert":
        if not new_blocks:
            return False
        index = _index_from(mod, "position")
        if index is None:
            blocks.extend(new_blocks)
            return True
        index = max(0, min(index, len(blocks)))
        blocks[index:index] = new_blocks
        return True

    if kind == "delete":
        index = _index_from(mod, "paragraph_index")
        if index is None or not 0 <= index < len(blocks):
            return False
        del blocks[index]
        return True

    if kind == "replace_paragraph":
        if not new_blocks:
            return False
        index = _index_from(mod, "paragraph_index")
        if index is not None:
            if not 0 <= index < len(blocks):
                return False
            blocks[index : index + 1] = new_blocks
            return True
        if mod.target:
            return _replace_section(blocks, mod.target, new_blocks)
        return False

    logger.warning("Unknown modification type: %s", kind)
    return False


def _replace_section(blocks: list[Block], title: str, new_blocks: list[Block]) -> bool:
    """Replace a heading and its body with new blocks, matched by title."""
    structure = DocumentAnalyzer().analyze(blocks)
    section = find_section_by_title(structure, title)
    if section is None or section.heading is None:
        return False
    blocks[section.heading.block_index : section.end_index + 1] = new_blocks
    return True
