"""OpenAI-compatible provider built on the official async SDK."""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from chatcore.core.llm_connector import LLMConnector, LLMResponse, Message, ProviderError

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMConnector):
    """Chat completions against OpenAI or any API speaking the same protocol."""

    def __init__(
        self,
        model_config: dict[str, Any],
        api_key: str,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize OpenAI provider.

        Args:
            model_config: Model configuration dict
            api_key: Provider API key
            base_url: Optional OpenAI-compatible endpoint
            client: Preconfigured client (tests)
        """
        super().__init__({"provider": "openai", **model_config})
        # Timeouts are enforced by the caller, so the SDK must not retry on its own
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    @staticmethod
    def _to_openai(messages: list[Message]) -> list[dict[str, str]]:
        return [{"role": msg.role, "content": msg.content} for msg in messages]

    @staticmethod
    def _provider_error(error: openai.OpenAIError) -> Exception:
        """Translate SDK exceptions into the connector contract."""
        if isinstance(error, openai.APITimeoutError):
            return asyncio.TimeoutError(str(error))
        if isinstance(error, openai.APIStatusError):
            return ProviderError(error.message, status=error.status_code)
        return ProviderError(str(error))

    async def generate(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs,
    ) -> LLMResponse:
        """Generate a completion.

        Args:
            messages: Conversation messages
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional OpenAI parameters (top_p, ...)

        Returns:
            LLMResponse with generated content

        Raises:
            asyncio.TimeoutError: If the SDK times out
            ProviderError: On any other provider failure
        """
        params = {
            "model": self.model_name,
            "messages": self._to_openai(messages),
            "temperature": temperature,
        }
        if max_tokens:
            params["max_tokens"] = max_tokens
        params.update(kwargs)

        try:
            response = await self.client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            logger.error(f"OpenAI generation error: {e}")
            raise self._provider_error(e) from e

        choice = response.choices[0]
        usage = response.usage
        return LLMResponse(
            content=choice.message.content or "",
            model_used=response.model or self.model_name,
            finish_reason=choice.finish_reason,
            token_count=usage.total_tokens if usage else 0,
            metadata={
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
            },
        )

    async def generate_stream(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs,
    ) -> AsyncIterator[str]:
        """Stream completion deltas."""
        params = {
            "model": self.model_name,
            "messages": self._to_openai(messages),
            "temperature": temperature,
            "stream": True,
        }
        if max_tokens:
            params["max_tokens"] = max_tokens
        params.update(kwargs)

        try:
            stream = await self.client.chat.completions.create(**params)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.OpenAIError as e:
            logger.error(f"OpenAI streaming error: {e}")
            raise self._provider_error(e) from e

    async def close(self) -> None:
        await self.client.close()
