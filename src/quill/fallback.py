"""Rule-based instruction matcher.

Used when the LLM is unavailable, returns garbage, or (for stories) when the
instruction is simple enough not to need it. Each pattern family below
contributes at most one modification; families are independent, so
"change the title to X and delete paragraph 2" yields two edits.

Supported phrasings (English, Chinese, some Japanese):

- title:    "change the title to X", "将标题改为X", 标题「X」
- content:  "change the content to X", "内容改成X"
- delete:   "delete paragraph 3", "删除第3段"
- replace:  "将第2段改为：X", "replace paragraph 2 to X"
- insert:   "在第2段插入关于X的内容", "insert at paragraph 2: X"
- section:  "添加章节，标题是X，内容是Y", "add a section titled X about Y"
"""

from __future__ import annotations

import logging
import re
from typing import Literal

from .language import Language
from .modifications import Modification

logger = logging.getLogger(__name__)

Variant = Literal["blog", "stories"]

_Q = "[\"'“”「」]"  # quote characters around a value
_NQ_TITLE = "[^\"'“”「」，。,\\n]"
_NQ_CONTENT = "[^\"'“”「」。\\n]"
_TO = "(?:改成|改为|为|成|\\bto\\b|，改成|，为)"

MAX_TITLE_LENGTH = 100
# Insert text up to this length that names a topic becomes a topic paragraph.
SHORT_INSERT_LENGTH = 40


def _compile(patterns: list[str]) -> list[re.Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


TITLE_PATTERNS = _compile(
    [
        rf"(?:修改|改|更改|change|update).*?(?:title|标题).*?{_TO}\s*{_Q}?({_NQ_TITLE}+?){_Q}?\s*$",
        rf"(?:title|标题).*?{_TO}\s*{_Q}?({_NQ_TITLE}+?){_Q}?\s*$",
        rf"将.*?(?:title|标题).*?{_TO}\s*{_Q}?({_NQ_TITLE}+?){_Q}?\s*$",
        rf"title.*?{_Q}(.*?){_Q}",
        rf"标题.*?{_Q}(.*?){_Q}",
        rf"タイトル.*?{_Q}(.*?){_Q}",
    ]
)

CONTENT_PATTERNS = _compile(
    [
        rf"(?:修改|改|更改|change|update).*?(?:content|内容).*?{_TO}\s*{_Q}?({_NQ_CONTENT}+?){_Q}?\s*$",
        rf"(?:content|内容).*?{_TO}\s*{_Q}?({_NQ_CONTENT}+?){_Q}?\s*$",
        rf"将.*?(?:content|内容).*?{_TO}\s*{_Q}?({_NQ_CONTENT}+?){_Q}?\s*$",
        rf"content.*?{_Q}(.*?){_Q}",
        rf"内容.*?{_Q}(.*?){_Q}",
        rf"コンテンツ.*?{_Q}(.*?){_Q}",
    ]
)

DELETE_PATTERNS = _compile(
    [
        r"删除\s*第?\s*(\d+)\s*段",
        r"删掉\s*第?\s*(\d+)\s*段",
        r"delete\s+paragraph\s+(\d+)",
        r"remove\s+paragraph\s+(\d+)",
    ]
)

REPLACE_PARAGRAPH_PATTERNS = _compile(
    [
        r"(?:将|把)\s*第?\s*(\d+)\s*段.*?(?:改为|改成|修改为)\s*[：:]\s*(.+?)$",
        r"(?:修改|replace)\s*(?:paragraph\s*)?第?\s*(\d+)\s*段?.*?(?:为|\bto\b|成)\s*[：:]?\s*(.+?)$",
    ]
)

INSERT_PATTERNS = _compile(
    [
        r"在\s*第?\s*(\d+)\s*段\s*(?:插入|添加)\s*(.+?)$",
        r"insert\s+(?:at|in)\s+paragraph\s+(\d+)\s*[：:]?\s*(.+?)$",
    ]
)

ADD_SECTION_PATTERNS = _compile(
    [
        rf"添加.*?(?:章节|section).*?标题.*?[是为]?\s*{_Q}?({_NQ_TITLE}+?){_Q}?\s*[，,]?\s*内容.*?[是为]?\s*(.+?)$",
        rf"add.*?section.*?(?:titled|named|title|heading)\s*{_Q}?({_NQ_TITLE}+?){_Q}?\s*[，,]?\s*(?:content|about)\s*(.+?)$",
    ]
)

# Stories: "重写 实践应用 部分", "rewrite the Background section"
SECTION_REWRITE_PATTERNS = _compile(
    [
        rf"(?:修改|改写|重写|更改)\s*{_Q}?({_NQ_TITLE}+?){_Q}?\s*(?:这一?)?(?:段落|部分|章节)",
        rf"(?:change|update|rewrite|replace)\s+(?:the\s+)?{_Q}?({_NQ_TITLE}+?){_Q}?\s+(?:paragraph|section)",
    ]
)

TOPIC_PATTERNS = _compile(
    [
        r"关于\s*([^，。,\n]+)",
        r"about\s+([^,.\n]+)",
        r"添加.*?([^，。,\n]+?)的.*?内容",
        r"add.*?content.*?about\s+([^,.\n]+)",
    ]
)

_INSERT_TOPIC = re.compile(r"(?:关于|about)\s*([^的。,，\n]+)", re.IGNORECASE)
_ADD_KEYWORDS = ("add", "添加", "追加", "append", "末尾", "更多")


def extract_topic(text: str) -> str:
    for pattern in TOPIC_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            return match.group(1).strip()
    return ""


def paragraph_content(topic: str, language: Language) -> str:
    """A starter section about a topic, meant to be edited by the author."""
    if language == "zh":
        return (
            f"## 关于{topic}\n\n"
            f"{topic}是一个值得深入探讨的主题。在当今快速发展的时代，理解{topic}的本质和影响变得越来越重要。\n\n"
            f"从历史角度来看，{topic}的发展经历了多个阶段。早期的研究和实践为今天的理解奠定了基础，"
            f"新的发现和理论不断推动这个领域向前发展。\n\n"
            f"在实践层面，{topic}已经在多个领域产生了深远的影响，为解决许多复杂问题提供了新的思路和方法。"
        )
    return (
        f"## About {topic}\n\n"
        f"{topic} is an important subject worthy of in-depth exploration. Understanding the nature "
        f"and impact of {topic} has become increasingly important.\n\n"
        f"From a historical perspective, the development of {topic} has gone through several stages. "
        f"Early research and practice laid the foundation for our understanding today.\n\n"
        f"At the practical level, {topic} has had a profound impact in multiple areas, providing new "
        f"ideas and methods for solving complex problems."
    )


def generic_content(language: Language, *, variant: Variant = "blog") -> str:
    if language == "zh":
        body = (
            "这是根据您的指令添加的新内容。\n\n"
            "本节将为您的文章增加更多深度和细节。建议您根据具体需求进一步编辑和扩展此内容。\n\n"
            "您可以添加更多事实、数据、案例研究或个人见解，使内容更加丰富和有价值。"
        )
        return f"## 新增内容\n\n{body}" if variant == "stories" else body
    body = (
        "This is new content added based on your instruction.\n\n"
        "This section will add more depth and detail to your article. Edit and expand it "
        "to fit your specific needs.\n\n"
        "You can add more facts, data, case studies, or personal insights to make the content "
        "richer and more valuable."
    )
    return f"## New Content\n\n{body}" if variant == "stories" else body


def section_replacement(section: str, instruction: str, language: Language) -> str:
    if language == "zh":
        return (
            f"### {section}\n\n"
            f"根据您的要求（{instruction}），本节内容已重新组织。\n\n"
            f"{section}部分现在更加聚焦于核心要点，并补充了相关的背景和实践细节。"
        )
    return (
        f"### {section}\n\n"
        f"This section has been reworked based on your request: {instruction}\n\n"
        f"The {section} section now focuses on the key points, with supporting background "
        f"and practical detail."
    )


def _insert_content(text: str, language: Language) -> str:
    """Body for an insert: the given text, or a topic stub for a short "about X" request."""
    text = (text or "").strip()
    topic_match = _INSERT_TOPIC.search(text)
    if topic_match and len(text) <= SHORT_INSERT_LENGTH:
        topic = topic_match.group(1).strip()
        if language == "zh":
            return f"关于{topic}的内容：\n\n这是插入的新段落，讨论{topic}的相关内容。"
        return f"About {topic}:\n\nThis is the inserted paragraph discussing {topic}."
    if text:
        return text
    return "这是插入的新段落内容。" if language == "zh" else "This is the inserted paragraph content."


def _first_match(patterns: list[re.Pattern[str]], text: str) -> re.Match[str] | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1):
            return match
    return None


def _explanation(modifications: list[Modification], language: Language) -> str:
    types = {m.type for m in modifications}
    if language == "zh":
        if not modifications:
            return "已根据您的指令进行修改。"
        text = "已成功应用您的修改。"
        if "update_title" in types:
            text += "标题已更新。"
        if "append" in types:
            text += "内容已添加。"
        if "replace_paragraph" in types:
            text += "段落已更新。"
        return text

    if not modifications:
        return "Modifications applied based on your instruction."
    text = "Modifications applied successfully."
    if "update_title" in types:
        text += " Title updated."
    if "append" in types:
        text += " Content added."
    if "replace_paragraph" in types:
        text += " Paragraph updated."
    return text


def generate_default_modifications(
    instruction: str,
    language: Language = "en",
    *,
    variant: Variant = "blog",
) -> tuple[list[Modification], str]:
    """Map a natural-language instruction to modifications without an LLM.

    Returns (modifications, explanation). An empty list means nothing
    recognizable was asked for.
    """
    instruction = instruction.strip()
    lower = instruction.lower()
    modifications: list[Modification] = []

    match = _first_match(TITLE_PATTERNS, instruction)
    if match:
        new_title = match.group(1).strip()
        if 0 < len(new_title) <= MAX_TITLE_LENGTH:
            modifications.append(Modification(type="update_title", title=new_title))
            logger.debug("Detected title change: %s", new_title)

    if variant == "blog":
        match = _first_match(CONTENT_PATTERNS, instruction)
        if match:
            modifications.append(Modification(type="replace", content=match.group(1).strip()))

    match = _first_match(DELETE_PATTERNS, instruction)
    if match:
        modifications.append(Modification(type="delete", paragraph_index=int(match.group(1)) - 1))

    match = _first_match(REPLACE_PARAGRAPH_PATTERNS, instruction)
    if match and match.group(2):
        modifications.append(
            Modification(
                type="replace_paragraph",
                paragraph_index=int(match.group(1)) - 1,
                content=match.group(2).strip(),
            )
        )

    match = _first_match(INSERT_PATTERNS, instruction)
    if match:
        modifications.append(
            Modification(
                type="insert",
                position=int(match.group(1)) - 1,
                content=_insert_content(match.group(2), language),
            )
        )

    match = _first_match(ADD_SECTION_PATTERNS, instruction)
    if match:
        section_title = match.group(1).strip()
        hint = (match.group(2) or "").strip()
        if language == "zh":
            body = hint or f"这是关于{section_title}的详细内容。"
        else:
            body = hint or f"This section covers {section_title} in detail."
        modifications.append(Modification(type="add_section", content=f"## {section_title}\n\n{body}"))

    if variant == "stories" and not modifications:
        match = _first_match(SECTION_REWRITE_PATTERNS, instruction)
        if match:
            section = match.group(1).strip()
            modifications.append(
                Modification(
                    type="replace_paragraph",
                    target=section,
                    content=section_replacement(section, instruction, language),
                )
            )

    if not modifications and any(k in lower for k in _ADD_KEYWORDS):
        topic = extract_topic(instruction)
        content = paragraph_content(topic, language) if topic else generic_content(language, variant=variant)
        modifications.append(Modification(type="append", content=content))
        logger.debug("Falling back to append (topic=%r)", topic)

    if not modifications:
        logger.info("No rule matched instruction: %.80s", instruction)

    return modifications, _explanation(modifications, language)
