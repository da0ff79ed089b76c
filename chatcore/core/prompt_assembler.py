"""System prompt assembly from bot identity, knowledge and platform guidance."""

import logging

from chatcore.core.knowledge_compiler import NO_KNOWLEDGE, KnowledgeCompiler
from chatcore.lib.cache_service import PROMPT_CACHE, CacheService, prompt_key
from chatcore.models.generation import Language, Platform
from chatcore.models.profile import BotProfile

logger = logging.getLogger(__name__)

KNOWLEDGE_HEADER = "Knowledge Base:"
END_OF_MARKET_DATA = "[End of Real-time Data]"

PLATFORM_GUIDANCE = {
    Platform.WEBSITE: "",
    Platform.TELEGRAM: (
        "Provide detailed and complete answers based on the knowledge base. Include all "
        "relevant information from documents, FAQs, and other sources."
    ),
    Platform.FACEBOOK: "Be friendly and engaging.",
    Platform.ZALO: "Be friendly and engaging.",
    Platform.DISCORD: "Keep answers concise, in short chat-sized paragraphs.",
    Platform.WHATSAPP: "Keep answers concise, in short chat-sized paragraphs.",
    Platform.WHATSAPP_WEB: "Keep answers concise, in short chat-sized paragraphs.",
}

BEHAVIOR_RULES = """Instructions:
- LANGUAGE (MANDATORY): Reply in the same language as the user's message. This rule overrides every other instruction, including the language of the knowledge base.
- Search the ENTIRE knowledge base (FAQs, documents, web content, structured data, real-time data) before answering.
- Answer based EXACTLY on the knowledge base above, with COMPLETE and DETAILED information: specific details, numbers, examples and explanations.
- Only say that you don't have the information after searching every section and finding nothing relevant.
- Format answers like a short report:
  - Start with a bold title line using a fitting emoji
  - Separate parts with a line of "━━━━━━━━━━"
  - Use bullet points for lists and key facts
  - Use emoji sparingly to mark sections
- Be helpful, friendly, and professional."""


def language_instruction(language: Language) -> str:
    """Second system message enforcing the reply language."""
    return (
        f"The user wrote in {language.value}. Your ENTIRE reply must be written in "
        f"{language.value}, even if the knowledge base is in another language."
    )


def with_market_context(prompt: str, market_context: str | None) -> str:
    """Place market data right after the knowledge header, ahead of the knowledge."""
    if not market_context:
        return prompt

    block = f"{KNOWLEDGE_HEADER}\n{market_context}\n{END_OF_MARKET_DATA}\n"
    if KNOWLEDGE_HEADER in prompt:
        return prompt.replace(f"{KNOWLEDGE_HEADER}\n", block, 1)
    return f"{block}\n{prompt}"


class PromptAssembler:
    """Builds and caches system prompts."""

    def __init__(self, compiler: KnowledgeCompiler, cache: CacheService | None = None):
        self.compiler = compiler
        self.cache = cache

    def assemble(
        self,
        profile: BotProfile,
        knowledge_text: str,
        platform: Platform = Platform.WEBSITE,
        market_context: str | None = None,
    ) -> str:
        """Render the system prompt. Deterministic for equal inputs.

        Args:
            profile: Bot profile (identity)
            knowledge_text: Compiled knowledge
            platform: Platform the reply goes to
            market_context: Optional real-time market data block

        Returns:
            System prompt text
        """
        parts = [
            f"You are {profile.name}, a helpful and knowledgeable chatbot.",
            f"{KNOWLEDGE_HEADER}\n{knowledge_text}",
            BEHAVIOR_RULES,
        ]
        guidance = PLATFORM_GUIDANCE.get(platform, "")
        if guidance:
            parts.append(f"Platform: {guidance}")

        return with_market_context("\n\n".join(parts), market_context)

    def get_system_prompt(
        self,
        profile: BotProfile,
        platform: Platform = Platform.WEBSITE,
        max_length: int | None = None,
        market_context: str | None = None,
    ) -> str:
        """System prompt for a profile, cached per version, platform and budget.

        Market context varies per message and is applied after the cache lookup.
        A prompt built after a knowledge failure is used once and not cached.
        """
        key = prompt_key(profile.bot_id, profile.version, platform.value, max_length)
        prompt_cache = self.cache.cache(PROMPT_CACHE) if self.cache else None

        prompt = prompt_cache.get(key) if prompt_cache is not None else None
        if prompt is not None:
            logger.debug(f"[{PROMPT_CACHE}] hit: {key}")
            return with_market_context(prompt, market_context)

        try:
            knowledge = self.compiler.get_knowledge(profile, max_length)
        except Exception as e:
            logger.error(
                f"Knowledge compilation failed for bot {profile.bot_id}: {e}", exc_info=True
            )
            prompt = self.assemble(profile, NO_KNOWLEDGE, platform)
        else:
            prompt = self.assemble(profile, knowledge, platform)
            if prompt_cache is not None:
                prompt_cache.set(key, prompt)

        logger.debug(f"Assembled prompt for bot {profile.bot_id}: {len(prompt)} chars")
        return with_market_context(prompt, market_context)
