"""Best-effort extraction and repair of JSON objects from LLM text.

Models asked for JSON still wrap it in code fences, prefix it with prose,
answer with Chinese field names, or put raw newlines inside string values.
`parse_llm_json` runs a cascade of increasingly aggressive repairs and only
gives up (JSONParseError) when none of them yield a valid object.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from .errors import JSONParseError

logger = logging.getLogger(__name__)

# Responses longer than this with no "{" are treated as prose suggestions.
TEXT_ONLY_THRESHOLD = 100

_FENCE_OPEN = re.compile(r"```(?:json|JSON)?\s*")
_GREEDY_OBJECT = re.compile(r"\{[\s\S]*\}")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_CONTENT_VALUE = re.compile(r'("content"\s*:\s*")(.*?)("\s*[,}\]])', re.DOTALL)

# Ordered so longer keys are replaced before their substrings.
FIELD_NAME_MAP: list[tuple[str, str]] = [
    ("修改操作", "modifications"),
    ("操作类型", "type"),
    ("新内容", "content"),
    ("内容", "content"),
    ("新标题", "title"),
    ("标题", "title"),
    ("解释", "explanation"),
    ("目标", "target"),
]


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (```json ... ```) around a payload."""
    cleaned = _FENCE_OPEN.sub("", text)
    return cleaned.replace("```", "").strip()


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` in text.

    Braces inside string literals are ignored. When no balanced object
    exists (e.g. truncated output) the greedy first-to-last-brace span is
    returned instead, which still gives the repair stages a chance.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    match = _GREEDY_OBJECT.search(text)
    return match.group(0) if match else None


def normalize_field_names(json_str: str) -> str:
    """Map Chinese JSON keys to the English schema keys."""
    if not any(f'"{zh}"' in json_str for zh, _ in FIELD_NAME_MAP):
        return json_str
    logger.warning("Detected Chinese field names in LLM JSON, converting")
    for zh, en in FIELD_NAME_MAP:
        json_str = json_str.replace(f'"{zh}"', f'"{en}"')
    return json_str


def repair_json_string(json_str: str) -> str:
    """Escape raw newlines/tabs inside string literals and drop raw CRs.

    Characters outside strings are left untouched, so structural
    whitespace between keys survives.
    """
    out: list[str] = []
    in_string = False
    escaped = False
    for ch in json_str:
        if escaped:
            out.append(ch)
            escaped = False
            continue
        if ch == "\\":
            out.append(ch)
            escaped = True
            continue
        if ch == '"':
            in_string = not in_string
            out.append(ch)
            continue
        if in_string:
            if ch == "\n":
                out.append("\\n")
                continue
            if ch == "\t":
                out.append("\\t")
                continue
            if ch == "\r":
                continue
        out.append(ch)
    return "".join(out)


def strip_control_chars(json_str: str) -> str:
    return _CONTROL_CHARS.sub("", json_str.replace("\r\n", "\n"))


def _clean_content_fields(json_str: str) -> str:
    """Last resort: escape bare quotes and newlines inside "content" values."""

    def _fix(match: re.Match[str]) -> str:
        value = match.group(2)
        value = value.replace("\r", "").replace("\n", "\\n").replace("\t", "\\t")
        value = re.sub(r'(?<!\\)"', '\\"', value)
        return f"{match.group(1)}{value}{match.group(3)}"

    return _CONTENT_VALUE.sub(_fix, json_str)


def parse_llm_json(text: str, *, allow_text_only: bool = True) -> dict[str, Any] | None:
    """Parse an LLM response into a JSON object.

    Returns None when the model answered with prose only (long text and no
    ``{`` at all) and allow_text_only is set; callers surface that text as
    suggestions rather than edits.

    Raises:
        JSONParseError: no object was found, or every repair stage failed.
    """
    cleaned = strip_code_fences(text or "")
    candidate = extract_json_object(cleaned)

    if candidate is None:
        if allow_text_only and len(cleaned) > TEXT_ONLY_THRESHOLD and "{" not in cleaned:
            logger.info("LLM returned text suggestions instead of JSON (%d chars)", len(cleaned))
            return None
        raise JSONParseError("No JSON found in response", raw=cleaned)

    candidate = normalize_field_names(candidate)

    stages = (
        ("as-is", lambda s: s),
        ("repair-strings", repair_json_string),
        ("strip-control", lambda s: repair_json_string(strip_control_chars(s))),
        ("clean-content", lambda s: _clean_content_fields(strip_control_chars(s))),
    )

    last_error: Exception | None = None
    for name, transform in stages:
        try:
            parsed = json.loads(transform(candidate))
        except json.JSONDecodeError as e:
            last_error = e
            logger.debug("JSON parse stage %s failed: %s", name, e)
            continue
        if not isinstance(parsed, dict):
            raise JSONParseError("JSON response is not an object", raw=candidate)
        if name != "as-is":
            logger.info("Recovered LLM JSON via %s stage", name)
        return parsed

    logger.warning("Failed to parse LLM JSON: %s", last_error)
    raise JSONParseError(f"Invalid JSON in response: {last_error}", raw=candidate, cause=last_error)


def coerce_str_list(value: Any) -> list[str]:
    """Normalize a model-provided list field.

    A bare string becomes a single item; anything that is not a list or
    tuple yields an empty list.
    """
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value if v]
