from __future__ import annotations

import re
from typing import Literal

Language = Literal["zh", "ja", "ko", "ru", "en"]

_SCRIPTS: list[tuple[Language, re.Pattern[str]]] = [
    ("zh", re.compile(r"[\u4e00-\u9fa5]")),
    ("ja", re.compile(r"[\u3040-\u309f\u30a0-\u30ff]")),
    ("ko", re.compile(r"[\uac00-\ud7af]")),
    ("ru", re.compile(r"[\u0400-\u04ff]")),
]


def detect_language(text: str | None) -> Language:
    """Guess the writing language from the scripts present in the text.

    Han characters win over kana, so mixed Japanese text with kanji reports "zh".
    """
    if not text:
        return "en"
    for language, pattern in _SCRIPTS:
        if pattern.search(text):
            return language
    return "en"


def is_chinese(text: str | None) -> bool:
    return detect_language(text) == "zh"
