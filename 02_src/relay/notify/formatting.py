"""Telegram MarkdownV2 escaping."""

import re

from ..errors import FormatError

MAX_MESSAGE_LENGTH = 4096

# Characters that must be escaped outside code entities
_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")
# Inside code entities only ` and \ are escaped
_CODE_SPECIAL = re.compile(r"([`\\])")
_CODE = re.compile(r"(```.*?```|`[^`\n]+`)", re.DOTALL)


def _escape_code(segment: str) -> str:
    fence = "```" if segment.startswith("```") else "`"
    body = _CODE_SPECIAL.sub(r"\\\1", segment[len(fence):-len(fence)])
    return fence + body + fence


def escape_markdown_v2(text: str) -> str:
    """Escape ``text`` for parse_mode=MarkdownV2, keeping code spans and blocks.

    Raises FormatError when the escaped text no longer fits in one message.
    """
    parts = _CODE.split(text)
    escaped = "".join(
        _escape_code(part) if index % 2 else _SPECIAL.sub(r"\\\1", part)
        for index, part in enumerate(parts)
    )
    if len(escaped) > MAX_MESSAGE_LENGTH:
        raise FormatError(
            f"Escaped text is {len(escaped)} characters, limit is {MAX_MESSAGE_LENGTH}"
        )
    return escaped


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Cut ``text`` into pieces of at most ``limit`` characters.

    Cuts fall on the last line break inside the limit when there is one.
    """
    chunks = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")
    chunks.append(text)
    return [chunk for chunk in chunks if chunk.strip()] or chunks[:1]
