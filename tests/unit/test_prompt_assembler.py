"""Tests for system prompt assembly."""

from chatcore.core.knowledge_compiler import NO_KNOWLEDGE, KnowledgeCompiler
from chatcore.core.prompt_assembler import (
    END_OF_MARKET_DATA,
    PromptAssembler,
    language_instruction,
    with_market_context,
)
from chatcore.lib.cache_service import PROMPT_CACHE
from chatcore.models.generation import Language, Platform

MARKET = "[REAL-TIME MARKET DATA]\n- Token: BITCOIN\n- Price: $65,000.00"


class BrokenCompiler(KnowledgeCompiler):
    def get_knowledge(self, profile, max_length=None):
        raise RuntimeError("corrupt source")


class CountingCompiler(KnowledgeCompiler):
    def __init__(self, cache=None):
        super().__init__(cache)
        self.requests = 0

    def get_knowledge(self, profile, max_length=None):
        self.requests += 1
        return super().get_knowledge(profile, max_length)


def test_assemble_structure(profile):
    assembler = PromptAssembler(KnowledgeCompiler())

    prompt = assembler.assemble(profile, "FAQs:\nQ: A", Platform.WEBSITE)

    assert prompt.startswith("You are Bakery Bot, a helpful and knowledgeable chatbot.")
    assert "Knowledge Base:\nFAQs:\nQ: A" in prompt
    assert "LANGUAGE (MANDATORY)" in prompt
    assert "Search the ENTIRE knowledge base" in prompt
    assert "━━━━━━━━━━" in prompt
    assert "Platform:" not in prompt


def test_assemble_is_deterministic(profile):
    assembler = PromptAssembler(KnowledgeCompiler())

    first = assembler.assemble(profile, "kb", Platform.TELEGRAM, MARKET)
    second = assembler.assemble(profile, "kb", Platform.TELEGRAM, MARKET)

    assert first == second


def test_platform_guidance(profile):
    assembler = PromptAssembler(KnowledgeCompiler())

    assert "detailed and complete answers" in assembler.assemble(profile, "kb", Platform.TELEGRAM)
    assert "friendly and engaging" in assembler.assemble(profile, "kb", Platform.ZALO)
    assert "concise" in assembler.assemble(profile, "kb", Platform.DISCORD)


def test_market_context_precedes_knowledge(profile):
    assembler = PromptAssembler(KnowledgeCompiler())

    prompt = assembler.assemble(profile, "THE KNOWLEDGE", Platform.WEBSITE, MARKET)

    header = prompt.index("Knowledge Base:")
    assert header < prompt.index(MARKET) < prompt.index(END_OF_MARKET_DATA) < prompt.index("THE KNOWLEDGE")


def test_with_market_context_noop_without_context():
    assert with_market_context("Knowledge Base:\nkb", None) == "Knowledge Base:\nkb"


def test_language_instruction():
    instruction = language_instruction(Language.VIETNAMESE)
    assert "Vietnamese" in instruction
    assert "ENTIRE reply" in instruction


def test_system_prompt_cached(cache_service, profile):
    compiler = CountingCompiler(cache_service)
    assembler = PromptAssembler(compiler, cache_service)

    first = assembler.get_system_prompt(profile, Platform.WEBSITE, 80_000)
    second = assembler.get_system_prompt(profile, Platform.WEBSITE, 80_000)

    assert first == second
    assert compiler.requests == 1
    assert profile.faqs[1] in first


def test_prompt_cache_keyed_by_platform_and_budget(cache_service, profile):
    compiler = CountingCompiler(cache_service)
    assembler = PromptAssembler(compiler, cache_service)

    assembler.get_system_prompt(profile, Platform.WEBSITE, 80_000)
    assembler.get_system_prompt(profile, Platform.TELEGRAM, 80_000)
    assembler.get_system_prompt(profile, Platform.WEBSITE, 8000)

    assert compiler.requests == 3
    assert len(cache_service.cache(PROMPT_CACHE)) == 3


def test_market_context_not_cached(cache_service, profile):
    assembler = PromptAssembler(KnowledgeCompiler(cache_service), cache_service)

    with_market = assembler.get_system_prompt(profile, Platform.WEBSITE, 80_000, MARKET)
    without_market = assembler.get_system_prompt(profile, Platform.WEBSITE, 80_000)

    assert MARKET in with_market
    assert MARKET not in without_market


def test_compiler_failure_uses_placeholder_and_skips_cache(cache_service, profile):
    assembler = PromptAssembler(BrokenCompiler(cache_service), cache_service)

    prompt = assembler.get_system_prompt(profile, Platform.WEBSITE, 80_000)

    assert f"Knowledge Base:\n{NO_KNOWLEDGE}" in prompt
    assert len(cache_service.cache(PROMPT_CACHE)) == 0
