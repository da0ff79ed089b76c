"""Base LLM connector abstraction for swappable model interface."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class Message:
    """Chat message format."""

    role: str  # "user", "assistant", "system"
    content: str


@dataclass
class LLMResponse:
    """Standardized LLM response."""

    content: str
    model_used: str
    finish_reason: str | None = None  # "stop", "length", ...
    token_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


class ProviderError(Exception):
    """Non-timeout failure reported by a provider.

    ``status`` is the HTTP status when the provider returned one.
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status


class LLMConnector(ABC):
    """Abstract base class for LLM provider implementations.

    Implementations raise ``asyncio.TimeoutError`` when the provider times out
    and ``ProviderError`` for every other failure.
    """

    def __init__(self, model_config: dict[str, Any]):
        """Initialize connector with model configuration.

        Args:
            model_config: Model configuration dict with provider-specific settings
        """
        self.model_config = model_config
        self.model_name = model_config.get("model_name")
        self.provider = model_config.get("provider")
        logger.info(f"Initialized {self.provider} connector for {self.model_name}")

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs,
    ) -> LLMResponse:
        """Generate response from model.

        Args:
            messages: List of conversation messages
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens to generate
            **kwargs: Provider-specific parameters

        Returns:
            LLMResponse with generated content and metadata
        """

    @abstractmethod
    def generate_stream(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs,
    ) -> AsyncIterator[str]:
        """Stream response text chunks from model.

        Args:
            messages: List of conversation messages
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens to generate
            **kwargs: Provider-specific parameters

        Yields:
            Content deltas as they arrive
        """

    async def close(self) -> None:
        """Release provider resources."""
