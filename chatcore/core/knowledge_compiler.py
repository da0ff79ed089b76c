"""Knowledge compiler: merges a bot's enabled sources into one bounded text."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from chatcore.core.truncation import (
    KnowledgeSection,
    SectionKind,
    fit_sections,
    truncate_sections,
)
from chatcore.lib.cache_service import KNOWLEDGE_CACHE, CacheService, knowledge_key
from chatcore.models.profile import BotProfile

logger = logging.getLogger(__name__)

NO_KNOWLEDGE = "No knowledge base available."

CONTENT_CONTINUES = "...[content continues]"
DATA_CONTINUES = "...[data continues]"


@dataclass(frozen=True)
class SectionLimits:
    """Per-item character caps and per-section item counts."""

    document_chars: int = 3000
    url_chars: int = 2000
    structured_chars: int = 1500
    max_documents: int = 20
    max_urls: int = 20
    max_structured: int = 10

    @classmethod
    def for_budget(cls, max_length: int | None) -> "SectionLimits":
        """Derive caps from a total budget (defaults when there is none)."""
        if max_length is None:
            return cls()

        max_items = 10 if max_length < 10_000 else 20
        return cls(
            document_chars=min(3000, max_length // 5),
            url_chars=min(2000, max_length // 6),
            structured_chars=min(1500, max_length // 8),
            max_documents=max_items,
            max_urls=max_items,
            max_structured=10,
        )


@dataclass(frozen=True)
class CompiledKnowledge:
    """Compiled knowledge text with the full sections it was built from."""

    text: str
    sections: tuple[KnowledgeSection, ...] = ()
    truncated: bool = False
    # Characters of each section present in ``text``, truncation markers included
    section_lengths: dict[str, int] = field(default_factory=dict)

    def fit(self, max_length: int | None) -> str:
        """Return the text re-truncated to ``max_length`` when it is too long."""
        if max_length is None or len(self.text) <= max_length:
            return self.text
        if not self.sections:
            return self.text[:max_length]
        return truncate_sections(self.sections, max_length)


def _cap(text: str, limit: int, marker: str) -> str:
    if len(text) > limit:
        return text[:limit] + marker
    return text


def _meta_line(category: str | None, tags: Sequence[str]) -> str | None:
    parts = []
    if category:
        parts.append(f"Category: {category}")
    if tags:
        parts.append(f"Tags: {', '.join(tags)}")
    return " | ".join(parts) or None


def _render_items(
    title: str,
    items: Sequence[Any],
    limit: int,
    noun: str,
    render: Callable[[Any], str],
) -> str:
    blocks = [render(item) for item in items[:limit]]
    omitted = len(items) - limit
    if omitted > 0:
        blocks.append(f"...and {omitted} more {noun} not shown")
    return f"{title}\n" + "\n\n".join(blocks)


class KnowledgeCompiler:
    """Builds the knowledge blob for a bot profile."""

    def __init__(self, cache: CacheService | None = None):
        """Initialize the compiler.

        Args:
            cache: Shared cache service; without one every call recompiles
        """
        self.cache = cache

    def compile(self, profile: BotProfile, max_length: int | None = None) -> CompiledKnowledge:
        """Compile enabled knowledge sources. Pure: no cache involved.

        Args:
            profile: Bot profile snapshot
            max_length: Optional total character budget

        Returns:
            CompiledKnowledge
        """
        limits = SectionLimits.for_budget(max_length)
        sections = []

        faqs = [faq for faq in profile.faqs if faq.strip()]
        if faqs:
            sections.append(
                KnowledgeSection(SectionKind.FAQ, "FAQs:\n" + "\n\n".join(faqs) + "\n[End of FAQs]")
            )

        documents = profile.enabled_documents()
        if documents:

            def render_document(doc) -> str:
                lines = [f"--- {doc.name} ({doc.kind.upper()}) ---"]
                meta = _meta_line(doc.category, doc.tags)
                if meta:
                    lines.append(meta)
                lines.append(_cap(doc.content, limits.document_chars, CONTENT_CONTINUES))
                return "\n".join(lines)

            sections.append(
                KnowledgeSection(
                    SectionKind.DOCUMENT,
                    _render_items(
                        "Document Knowledge Base:",
                        documents,
                        limits.max_documents,
                        "documents",
                        render_document,
                    ),
                )
            )

        urls = profile.enabled_urls()
        if urls:

            def render_url(source) -> str:
                lines = [f"--- {source.title or source.url} ({source.url}) ---"]
                meta = _meta_line(source.category, source.tags)
                if meta:
                    lines.append(meta)
                lines.append(_cap(source.content, limits.url_chars, CONTENT_CONTINUES))
                return "\n".join(lines)

            sections.append(
                KnowledgeSection(
                    SectionKind.URL,
                    _render_items(
                        "Web Content Knowledge Base:", urls, limits.max_urls, "web pages", render_url
                    ),
                )
            )

        records = profile.enabled_structured_data()
        if records:

            def render_record(record) -> str:
                lines = [f"--- {record.name} ({record.kind}) ---"]
                meta = _meta_line(record.category, record.tags)
                if meta:
                    lines.append(meta)
                lines.append(_cap(record.render(), limits.structured_chars, DATA_CONTINUES))
                return "\n".join(lines)

            sections.append(
                KnowledgeSection(
                    SectionKind.STRUCTURED,
                    _render_items(
                        "Structured Data Knowledge Base:",
                        records,
                        limits.max_structured,
                        "structured records",
                        render_record,
                    ),
                )
            )

        if not sections:
            return CompiledKnowledge(text=NO_KNOWLEDGE)

        text = "\n\n".join(section.text for section in sections)
        section_lengths = {section.kind.value: len(section.text) for section in sections}
        truncated = False
        if max_length is not None and len(text) > max_length:
            logger.info(
                f"Knowledge for bot {profile.bot_id} is {len(text)} chars, "
                f"truncating to {max_length}"
            )
            text, section_lengths = fit_sections(sections, max_length)
            truncated = True

        return CompiledKnowledge(
            text=text,
            sections=tuple(sections),
            truncated=truncated,
            section_lengths=section_lengths,
        )

    def get_knowledge(self, profile: BotProfile, max_length: int | None = None) -> str:
        """Knowledge text for a profile, served from the versioned cache.

        The cache holds the full compilation per ``(bot_id, version)``;
        smaller budgets re-run the truncation policy on it.

        Args:
            profile: Bot profile snapshot
            max_length: Optional total character budget

        Returns:
            Knowledge text
        """
        if self.cache is None:
            return self.compile(profile, max_length).text

        full = self.cache.get_or_compute(
            KNOWLEDGE_CACHE,
            knowledge_key(profile.bot_id, profile.version),
            lambda: self.compile(profile),
        )
        text = full.fit(max_length)

        logger.debug(
            f"Knowledge for bot {profile.bot_id}: {len(text)} chars "
            f"(full sections: {full.section_lengths}, budget: {max_length or 'full'})"
        )
        return text
