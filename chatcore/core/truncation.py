"""Priority truncation of compiled knowledge.

FAQs are protected; the remaining budget goes to web content, then
documents, then structured data.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

FAQ_SAFETY_CEILING = 30_000
# Budgets below this come from the fallback tier, where even FAQs may be trimmed
FALLBACK_THRESHOLD = 10_000
SEPARATOR_RESERVE = 200
SEPARATOR = "\n\n"

FAQ_TRUNCATED_MARKER = "...[FAQs truncated]"
SECTION_TRUNCATED_MARKER = "...[truncated]"
FAQ_ONLY_NOTE = "[Other knowledge sections were omitted to preserve the complete FAQs]"
PRIORITY_NOTE = (
    "[Knowledge base truncated to {max_length} chars. "
    "Priority order: FAQs > Web content > Documents > Structured data]"
)


class SectionKind(str, Enum):
    FAQ = "faq"
    DOCUMENT = "document"
    URL = "url"
    STRUCTURED = "structured"


TRUNCATION_PRIORITY = (SectionKind.URL, SectionKind.DOCUMENT, SectionKind.STRUCTURED)


@dataclass(frozen=True)
class KnowledgeSection:
    """One rendered section of the knowledge base, header included."""

    kind: SectionKind
    text: str


def _join(parts: list[str]) -> str:
    return SEPARATOR.join(parts)


def _faq_only(faq_text: str, max_length: int, trim: bool) -> tuple[str, dict[str, int]]:
    """FAQ block alone, followed by the omission and priority notes.

    With ``trim`` the FAQs are cut so the whole result, notes included, stays
    within ``max_length`` (never above the safety ceiling).
    """
    notes = [FAQ_ONLY_NOTE, PRIORITY_NOTE.format(max_length=max_length)]
    if trim:
        overhead = len(FAQ_TRUNCATED_MARKER) + len(_join(["", *notes]))
        cut = max(0, min(max_length - overhead, FAQ_SAFETY_CEILING))
        logger.warning(f"FAQ block ({len(faq_text)} chars) cut to {cut} chars")
        faq_text = faq_text[:cut] + FAQ_TRUNCATED_MARKER

    used = {SectionKind.FAQ.value: len(faq_text)} if faq_text else {}
    parts = [faq_text] if faq_text else []
    return _join(parts + notes), used


def fit_sections(
    sections: Sequence[KnowledgeSection], max_length: int
) -> tuple[str, dict[str, int]]:
    """Fit rendered sections into ``max_length`` characters by priority.

    The trailing notes are not counted against the section budget; the
    separator reserve covers them.

    Args:
        sections: Rendered sections of a full compilation
        max_length: Character budget

    Returns:
        Truncated knowledge text ending with the priority note, and the number
        of characters emitted per section kind (truncation markers included)
    """
    by_kind = {section.kind: section.text for section in sections}
    faq = by_kind.get(SectionKind.FAQ, "")

    if len(faq) > FAQ_SAFETY_CEILING or (
        len(faq) > max_length and max_length < FALLBACK_THRESHOLD
    ):
        return _faq_only(faq, max_length, trim=True)

    remaining = max_length - len(faq) - SEPARATOR_RESERVE
    if remaining <= 0:
        logger.info(f"No room left after FAQs ({len(faq)} chars), dropping other sections")
        return _faq_only(faq, max_length, trim=False)

    parts = [faq] if faq else []
    used = {SectionKind.FAQ.value: len(faq)} if faq else {}
    for kind in TRUNCATION_PRIORITY:
        text = by_kind.get(kind)
        if not text or remaining <= 0:
            continue

        if len(text) <= remaining:
            remaining -= len(text)
        else:
            logger.debug(f"Section {kind.value} cut to {remaining} chars")
            text = text[:remaining] + SECTION_TRUNCATED_MARKER
            remaining = 0
        parts.append(text)
        used[kind.value] = len(text)

    parts.append(PRIORITY_NOTE.format(max_length=max_length))
    return _join(parts), used


def truncate_sections(sections: Sequence[KnowledgeSection], max_length: int) -> str:
    """Truncated knowledge text only; see ``fit_sections``."""
    text, _ = fit_sections(sections, max_length)
    return text
