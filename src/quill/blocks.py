"""Helpers for BlockNote-style block documents.

A block is a plain dict::

    {"id": "...", "type": "paragraph" | "heading" | ..., "props": {...},
     "content": "text" | [{"type": "text", "text": "..."}, ...], "children": [...]}

Everything else in Quill treats documents as ``list[dict]`` and goes through
these helpers for text extraction.
"""

from __future__ import annotations

import random
import re
import string
import time
from typing import Any

Block = dict[str, Any]

_HEADING_LINE = re.compile(r"^(#{1,3})\s+(.+)$")


def block_text(block: Block) -> str:
    """Plain text of a single block (inline content only)."""
    content = block.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict):
                text = item.get("text")
                if isinstance(text, str):
                    parts.append(text)
                elif isinstance(item.get("content"), list):
                    # Links wrap their styled text in a nested content list.
                    parts.append(block_text(item))
        return "".join(parts)
    return ""


def blocks_to_text(blocks: list[Block] | None, *, separator: str = "\n\n") -> str:
    """Join non-empty block texts."""
    if not blocks:
        return ""
    texts = (block_text(b).strip() for b in blocks if isinstance(b, dict))
    return separator.join(t for t in texts if t)


def blocks_to_markdown(blocks: list[Block] | None) -> str:
    """Like blocks_to_text, but headings keep their ``#`` prefix."""
    if not blocks:
        return ""
    lines: list[str] = []
    for block in blocks:
        text = block_text(block).strip()
        if not text:
            continue
        if block.get("type") == "heading":
            lines.append(f"{'#' * heading_level(block)} {text}")
        else:
            lines.append(text)
    return "\n\n".join(lines)


def heading_level(block: Block) -> int:
    props = block.get("props") or {}
    try:
        return int(props.get("level", 1))
    except (TypeError, ValueError):
        return 1


def is_heading(block: Block, level: int | None = None) -> bool:
    if block.get("type") != "heading":
        return False
    return level is None or heading_level(block) == level


def count_words(text: str) -> int:
    return len(text.split())


def new_block_id(now_ms: int | None = None) -> str:
    ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"ai-{ms}-{suffix}"


def paragraph(text: str) -> Block:
    return {"type": "paragraph", "props": {}, "content": text}


def heading(text: str, level: int = 2) -> Block:
    return {"type": "heading", "props": {"level": level}, "content": text}


def string_to_blocks(text: str | None) -> list[Block]:
    """Convert LLM text output into blocks.

    One block per non-blank line; ``#``/``##``/``###`` lines become headings.
    """
    if not text:
        return []
    blocks: list[Block] = []
    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        match = _HEADING_LINE.match(line)
        if match:
            blocks.append(heading(match.group(2).strip(), len(match.group(1))))
        else:
            blocks.append(paragraph(line))
    return blocks
