"""Block-level diffs between two versions of a document.

Used for the modification preview and for version comparison. Blocks are
compared by their plain text, so formatting-only changes (highlight props)
do not show up as edits.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from enum import Enum

from .blocks import Block, block_text, count_words


class ChangeType(Enum):
    """Type of block change."""

    ADD = "add"
    MODIFY = "modify"
    DELETE = "delete"


@dataclass
class BlockChange:
    change_type: ChangeType
    block_index: int          # Index in the new document (old document for deletes)
    old_content: str | None = None
    new_content: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.change_type.value,
            "block_index": self.block_index,
            "old_content": self.old_content,
            "new_content": self.new_content,
        }


@dataclass
class DiffStats:
    blocks_added: int = 0
    blocks_modified: int = 0
    blocks_deleted: int = 0
    words_added: int = 0
    words_deleted: int = 0

    def to_dict(self) -> dict:
        return {
            "blocks_added": self.blocks_added,
            "blocks_modified": self.blocks_modified,
            "blocks_deleted": self.blocks_deleted,
            "words_added": self.words_added,
            "words_deleted": self.words_deleted,
        }


@dataclass
class DiffResult:
    changes: list[BlockChange] = field(default_factory=list)
    stats: DiffStats = field(default_factory=DiffStats)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    def to_dict(self) -> dict:
        return {
            "changes": [c.to_dict() for c in self.changes],
            "stats": self.stats.to_dict(),
        }


def _texts(blocks: list[Block] | None) -> list[str]:
    return [block_text(b) for b in (blocks or []) if isinstance(b, dict)]


def compute_diff(original: list[Block] | None, modified: list[Block] | None) -> DiffResult:
    """Diff two block lists.

    Replaced runs pair blocks one-to-one as modifications; any surplus on
    either side becomes additions or deletions.
    """
    old = _texts(original)
    new = _texts(modified)
    result = DiffResult()
    stats = result.stats

    def _add(j: int) -> None:
        result.changes.append(BlockChange(ChangeType.ADD, j, new_content=new[j]))
        stats.blocks_added += 1
        stats.words_added += count_words(new[j])

    def _delete(i: int) -> None:
        result.changes.append(BlockChange(ChangeType.DELETE, i, old_content=old[i]))
        stats.blocks_deleted += 1
        stats.words_deleted += count_words(old[i])

    matcher = difflib.SequenceMatcher(a=old, b=new, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        if tag == "insert":
            for j in range(j1, j2):
                _add(j)
        elif tag == "delete":
            for i in range(i1, i2):
                _delete(i)
        else:  # replace
            paired = min(i2 - i1, j2 - j1)
            for k in range(paired):
                old_text, new_text = old[i1 + k], new[j1 + k]
                result.changes.append(
                    BlockChange(ChangeType.MODIFY, j1 + k, old_content=old_text, new_content=new_text)
                )
                stats.blocks_modified += 1
                delta = count_words(new_text) - count_words(old_text)
                if delta > 0:
                    stats.words_added += delta
                else:
                    stats.words_deleted += -delta
            for i in range(i1 + paired, i2):
                _delete(i)
            for j in range(j1 + paired, j2):
                _add(j)

    return result


def render_unified(
    original: list[Block] | None,
    modified: list[Block] | None,
    *,
    from_label: str = "original",
    to_label: str = "modified",
    context_lines: int = 2,
) -> str:
    """Unified text diff, one block per line."""
    lines = difflib.unified_diff(
        _texts(original),
        _texts(modified),
        fromfile=from_label,
        tofile=to_label,
        n=context_lines,
        lineterm="",
    )
    return "\n".join(lines)
