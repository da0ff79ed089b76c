"""Whitespace normalization of generated replies."""

import re

EXCESS_BREAKS = re.compile(r"\n{3,}")
DOUBLE_BREAK = re.compile(r"\n\n")


def normalize(text: str) -> str:
    """Collapse blank lines and trim. Idempotent.

    3+ consecutive newlines become two, then every remaining pair becomes one.
    """
    if not text:
        return ""
    text = EXCESS_BREAKS.sub("\n\n", text)
    text = DOUBLE_BREAK.sub("\n", text)
    return text.strip()
