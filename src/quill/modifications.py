"""The Modification edit operation shared by every pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

MODIFICATION_TYPES = frozenset(
    {
        "replace",
        "insert",
        "append",
        "update_title",
        "add_section",
        "delete",
        "replace_paragraph",
    }
)


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Modification:
    """One structured edit to a document.

    `target` is free-form: a section title for section-scoped edits, or a
    stringified block index for the apply endpoint.
    """

    type: str
    content: str | None = None
    title: str | None = None
    target: str | None = None
    position: int | None = None
    paragraph_index: int | None = None
    block_range: tuple[int, int] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Modification":
        block_range = data.get("block_range") or data.get("blockRange")
        parsed_range: tuple[int, int] | None = None
        if isinstance(block_range, (list, tuple)) and len(block_range) == 2:
            start, end = _as_int(block_range[0]), _as_int(block_range[1])
            if start is not None and end is not None:
                parsed_range = (start, end)

        paragraph_index = data.get("paragraph_index", data.get("paragraphIndex"))
        target = data.get("target")
        content = data.get("content")
        title = data.get("title")
        metadata = data.get("metadata")
        return cls(
            type=str(data.get("type") or ""),
            content=content if isinstance(content, str) else None,
            title=title if isinstance(title, str) else None,
            target=str(target) if target is not None else None,
            position=_as_int(data.get("position")),
            paragraph_index=_as_int(paragraph_index),
            block_range=parsed_range,
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        for key in ("content", "title", "target", "position", "paragraph_index"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        if self.block_range is not None:
            out["block_range"] = list(self.block_range)
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out

    def is_valid(self) -> bool:
        """Known type, and carries the payload that type needs."""
        if self.type not in MODIFICATION_TYPES:
            return False
        if self.type == "update_title":
            return bool(self.title)
        if self.type == "delete":
            return self.paragraph_index is not None or self.target is not None
        return bool(self.content)


def coerce_modifications(raw: Any) -> list[Modification]:
    """Turn an LLM/JSON list into valid Modifications, dropping the rest."""
    if not isinstance(raw, list):
        return []
    result: list[Modification] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        mod = Modification.from_dict(item)
        if mod.is_valid():
            result.append(mod)
        else:
            logger.debug("Dropping invalid modification: %s", item)
    return result
