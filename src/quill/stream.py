"""Decoder for the AI SDK data-stream text format.

Chat endpoints stream lines such as::

    0:"Hello"
    0:" world"
    d:{"finishReason":"stop"}

Only ``0:`` lines carry text; each payload is a JSON-encoded string.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

TEXT_PREFIX = "0:"


def parse_stream_line(line: str) -> str | None:
    """Text chunk carried by a single line, or None."""
    line = line.strip()
    if not line.startswith(TEXT_PREFIX):
        return None
    try:
        value = json.loads(line[len(TEXT_PREFIX) :])
    except json.JSONDecodeError:
        logger.debug("Skipping malformed stream line: %r", line[:80])
        return None
    return value if isinstance(value, str) else None


def iter_stream_text(chunks: Iterable[bytes | str]) -> Iterator[str]:
    """Yield text pieces from raw network chunks.

    Chunks may split a line anywhere; partial lines are buffered until the
    next newline. A trailing line without newline is flushed at the end.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    for chunk in chunks:
        if isinstance(chunk, bytes):
            chunk = decoder.decode(chunk)
        buffer += chunk
        *lines, buffer = buffer.split("\n")
        for line in lines:
            text = parse_stream_line(line)
            if text is not None:
                yield text
    if buffer:
        text = parse_stream_line(buffer)
        if text is not None:
            yield text


def collect_stream_text(chunks: Iterable[bytes | str]) -> str:
    return "".join(iter_stream_text(chunks))


def plain_text(content: str) -> str:
    """Decode content captured raw from a data stream; other text passes through."""
    if not content.lstrip().startswith(TEXT_PREFIX + '"'):
        return content
    return collect_stream_text([content])
