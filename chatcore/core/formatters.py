"""Platform formatting of normalized replies."""

import html
import re

from chatcore.core.response_normalizer import normalize

NUMBERED_ITEM = re.compile(r"^(\d+)\.\s+(.+)$")
BULLET_ITEM = re.compile(r"^[-•*]\s+(.+)$")
HEADING_BREAK = re.compile(r"^(.+):\n", re.MULTILINE)
EXTRA_SPACES = re.compile(r"[ \t]{2,}")

# Applied in order to HTML-escaped text; markdown markers never need escaping
INLINE_RULES = (
    (re.compile(r"\*\*(.+?)\*\*"), r"<b>\1</b>"),
    (re.compile(r"(?<!\*)\*([^*\n]+?)\*(?!\*)"), r"<i>\1</i>"),
    (re.compile(r"`([^`]+)`"), r"<code>\1</code>"),
    (re.compile(r"__(.+?)__"), r"<u>\1</u>"),
)


def _escape(text: str) -> str:
    return html.escape(text, quote=False)


def _inline(line: str) -> str:
    line = _escape(line)
    for pattern, replacement in INLINE_RULES:
        line = pattern.sub(replacement, line)
    return line


def format_telegram_message(text: str) -> str:
    """Convert a reply to Telegram HTML parse mode.

    Numbered items get a bold number, bullets become "•", and inline
    bold/italic/code/underline markdown becomes HTML tags. Everything else is
    escaped.
    """
    if not text:
        return ""

    text = normalize(text.replace("\r\n", "\n").replace("\r", "\n"))

    lines = []
    for line in text.split("\n"):
        numbered = NUMBERED_ITEM.match(line)
        if numbered:
            lines.append(f"<b>{numbered.group(1)}.</b> {_inline(numbered.group(2))}")
            continue

        bullet = BULLET_ITEM.match(line)
        if bullet:
            lines.append(f"• {_inline(bullet.group(1))}")
            continue

        lines.append(_inline(line))

    formatted = "\n".join(lines)
    formatted = HEADING_BREAK.sub(r"\1:\n\n", formatted)
    formatted = EXTRA_SPACES.sub(" ", formatted)
    return formatted.strip()
