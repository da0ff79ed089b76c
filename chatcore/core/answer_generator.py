"""Answer generator: timeout-raced generation with a reduced-budget fallback tier.

Flow per message:

    validate -> detect language -> market context (optional)
      -> primary attempt (large knowledge budget)
           success  -> normalize
           timeout  -> fallback attempt (small knowledge budget)
                         success -> normalize
                         failure -> UpstreamTimeout
           error    -> RateLimited | AuthFailure | UnknownUpstreamError
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator

from chatcore.core.intent import detect_language, detect_market_intent
from chatcore.core.knowledge_compiler import KnowledgeCompiler
from chatcore.core.llm_connector import LLMConnector, Message, ProviderError
from chatcore.core.prompt_assembler import PromptAssembler, language_instruction
from chatcore.core.providers.openai_provider import OpenAIProvider
from chatcore.core.response_normalizer import normalize
from chatcore.lib.cache_service import CacheService
from chatcore.lib.config import ConfigLoader, GenerationSettings
from chatcore.lib.errors import (
    UnknownUpstreamError,
    UpstreamTimeout,
    ValidationError,
    classify_status,
)
from chatcore.models.generation import (
    Attempt,
    GenerationRequest,
    GenerationResult,
    Language,
    Platform,
)
from chatcore.models.profile import BotProfile
from chatcore.tools.market_data import MarketDataTool

logger = logging.getLogger(__name__)


class AnswerGenerator:
    """Entry point used by platform adapters."""

    def __init__(
        self,
        connector: LLMConnector,
        settings: GenerationSettings | None = None,
        cache: CacheService | None = None,
        market_data: MarketDataTool | None = None,
    ):
        """Initialize the generator.

        Args:
            connector: Language model connector
            settings: Budgets, timeout and sampling settings
            cache: Process-wide cache service
            market_data: Optional market data tool; without it no market context is added
        """
        self.connector = connector
        self.settings = settings or GenerationSettings()
        self.cache = cache or CacheService()
        self.compiler = KnowledgeCompiler(self.cache)
        self.assembler = PromptAssembler(self.compiler, self.cache)
        self.market_data = market_data

    @classmethod
    def from_config(cls, config: ConfigLoader) -> "AnswerGenerator":
        """Build the generator and its collaborators from loaded configuration.

        Raises:
            ValueError: If OPENAI_API_KEY is not set
        """
        cache = CacheService(config.cache)
        connector = OpenAIProvider(
            {"model_name": config.generation.model},
            api_key=config.require_env("openai_api_key"),
            base_url=config.get_env("openai_base_url"),
        )
        market_data = None
        if config.market_data.enabled:
            market_data = MarketDataTool.from_settings(config.market_data, cache)
        return cls(connector, config.generation, cache, market_data)

    def validate(self, request: GenerationRequest) -> GenerationRequest:
        """Reject unusable requests before any network call.

        Raises:
            ValidationError: Missing profile, empty message or unknown platform
        """
        if request.profile is None:
            raise ValidationError("Bot profile is required")
        if not request.message or not request.message.strip():
            raise ValidationError("Message must not be empty")
        try:
            request.platform = Platform(request.platform)
        except ValueError as e:
            raise ValidationError(f"Unknown platform: {request.platform}") from e
        return request

    async def _market_context(self, message: str) -> str | None:
        if self.market_data is None:
            return None

        intent = detect_market_intent(message)
        if intent is None:
            return None

        try:
            context = await self.market_data.build_context(intent)
        except Exception as e:
            logger.warning(f"Market data lookup failed for {intent.token_phrase!r}: {e}")
            return None

        if context is None:
            logger.info(f"No market data for {intent.token_phrase!r}")
        return context

    def _messages(self, system_prompt: str, language: Language, message: str) -> list[Message]:
        return [
            Message(role="system", content=system_prompt),
            Message(role="system", content=language_instruction(language)),
            Message(role="user", content=message),
        ]

    async def _attempt(
        self,
        attempt: Attempt,
        request: GenerationRequest,
        language: Language,
        market_context: str | None,
        knowledge_budget: int,
        max_tokens: int,
    ) -> str:
        """One generation call raced against the timeout.

        Raises:
            asyncio.TimeoutError: If the call does not finish in time (it is cancelled)
            ProviderError: On provider failure
        """
        prompt = self.assembler.get_system_prompt(
            request.profile, request.platform, knowledge_budget, market_context
        )
        logger.info(
            f"{attempt.value} attempt for bot {request.profile.bot_id}: "
            f"prompt {len(prompt)} chars, max_tokens {max_tokens}"
        )

        response = await asyncio.wait_for(
            self.connector.generate(
                self._messages(prompt, language, request.message),
                temperature=self.settings.temperature,
                max_tokens=max_tokens,
                top_p=self.settings.top_p,
            ),
            timeout=self.settings.timeout_seconds,
        )
        return response.content

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate a reply with diagnostics.

        Args:
            request: Profile, message and platform

        Returns:
            GenerationResult with normalized reply text

        Raises:
            ValidationError: Before any network call
            UpstreamTimeout: Primary timed out and the fallback failed or came back empty
            RateLimited, AuthFailure, UnknownUpstreamError: Primary failed otherwise
        """
        request = self.validate(request)
        start_time = time.monotonic()

        language = detect_language(request.message)
        market_context = await self._market_context(request.message)

        try:
            text = await self._attempt(
                Attempt.PRIMARY,
                request,
                language,
                market_context,
                self.settings.primary_knowledge_budget,
                self.settings.primary_max_tokens,
            )
            attempt = Attempt.PRIMARY
        except asyncio.TimeoutError:
            logger.warning(
                f"Primary attempt timed out after {self.settings.timeout_seconds}s, "
                f"retrying with {self.settings.fallback_knowledge_budget} chars of knowledge"
            )
            try:
                text = await self._attempt(
                    Attempt.FALLBACK,
                    request,
                    language,
                    market_context,
                    self.settings.fallback_knowledge_budget,
                    self.settings.fallback_max_tokens,
                )
            except Exception as e:
                logger.error(f"Fallback attempt failed: {e!r}")
                raise UpstreamTimeout(
                    f"Generation timed out after {self.settings.timeout_seconds}s "
                    "and the reduced retry failed"
                ) from e
            attempt = Attempt.FALLBACK
        except ProviderError as e:
            error = classify_status(e.status, e.message)
            logger.error(f"Generation failed ({error.category}): {e.message}")
            raise error from e
        except Exception as e:
            logger.exception(f"Unexpected generation failure: {e}")
            raise UnknownUpstreamError(str(e)) from e

        reply = normalize(text)
        if not reply:
            if attempt == Attempt.FALLBACK:
                raise UpstreamTimeout(
                    "Primary attempt timed out and the reduced retry returned an empty completion"
                )
            raise UnknownUpstreamError("Provider returned an empty completion")

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"Reply for bot {request.profile.bot_id} via {attempt.value} attempt "
            f"in {elapsed_ms}ms ({len(reply)} chars)"
        )
        return GenerationResult(
            reply_text=reply,
            attempt=attempt,
            language=language,
            market_data_used=market_context is not None,
            elapsed_ms=elapsed_ms,
            metadata={"platform": request.platform.value},
        )

    async def generate_reply(
        self,
        profile: BotProfile | None,
        message: str,
        platform: Platform | str = Platform.WEBSITE,
    ) -> str:
        """Reply text for one message; raises classified errors."""
        result = await self.generate(GenerationRequest(profile, message, platform))
        return result.reply_text

    async def stream_reply(
        self,
        profile: BotProfile | None,
        message: str,
        platform: Platform | str = Platform.WEBSITE,
    ) -> AsyncIterator[str]:
        """Stream a reply in chunks. Primary budget only, no fallback tier.

        Chunks are passed through as generated, not normalized.
        """
        request = self.validate(GenerationRequest(profile, message, platform))
        language = detect_language(request.message)
        market_context = await self._market_context(request.message)

        prompt = self.assembler.get_system_prompt(
            request.profile,
            request.platform,
            self.settings.primary_knowledge_budget,
            market_context,
        )

        try:
            async for chunk in self.connector.generate_stream(
                self._messages(prompt, language, request.message),
                temperature=self.settings.temperature,
                max_tokens=self.settings.stream_max_tokens,
                top_p=self.settings.top_p,
            ):
                yield chunk
        except asyncio.TimeoutError as e:
            raise UpstreamTimeout("Streaming generation timed out") from e
        except ProviderError as e:
            raise classify_status(e.status, e.message) from e
        except Exception as e:
            logger.exception(f"Unexpected streaming failure: {e}")
            raise UnknownUpstreamError(str(e)) from e

    def invalidate_knowledge_cache(self, bot_id: str) -> int:
        """Evict cached knowledge and prompts of one bot.

        Returns:
            Number of evicted entries
        """
        return self.cache.invalidate(bot_id)

    async def close(self) -> None:
        """Close provider clients."""
        await self.connector.close()
        if self.market_data is not None:
            await self.market_data.close()
