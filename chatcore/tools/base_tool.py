"""Base interface for lookup tools that add external data to prompts.

A tool result never fails a reply on its own: the caller decides what a
failed lookup means, usually "leave the context out".
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ToolStatus(Enum):
    """Tool execution status."""

    SUCCESS = "success"
    FAILED = "failed"
    DISABLED = "disabled"


@dataclass
class ToolResult:
    """Outcome of one lookup."""

    tool_name: str
    status: ToolStatus
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    execution_time_ms: int = 0
    fallback_used: bool = False

    @property
    def ok(self) -> bool:
        return self.status == ToolStatus.SUCCESS

    @classmethod
    def success(cls, tool_name: str, fallback_used: bool = False, **data: Any) -> "ToolResult":
        return cls(tool_name, ToolStatus.SUCCESS, data=data, fallback_used=fallback_used)

    @classmethod
    def failure(cls, tool_name: str, error: str, fallback_used: bool = False) -> "ToolResult":
        return cls(tool_name, ToolStatus.FAILED, error=error, fallback_used=fallback_used)


class BaseTool(ABC):
    """Lookup with a primary path and a single recovery path."""

    def __init__(self, config: dict[str, Any]):
        """Initialize tool with configuration.

        Args:
            config: Tool-specific configuration; ``enabled`` defaults to True
        """
        self.config = config
        self.tool_name = self.__class__.__name__
        self.enabled = config.get("enabled", True)

    @abstractmethod
    async def execute(self, parameters: dict[str, Any]) -> ToolResult:
        """Primary lookup. Raise to hand over to ``fallback``."""

    async def fallback(self, parameters: dict[str, Any], error: Exception) -> ToolResult:
        """Recovery path after the primary lookup raised.

        The default gives up with the primary error.
        """
        return ToolResult.failure(self.tool_name, str(error))

    async def execute_with_fallback(self, parameters: dict[str, Any]) -> ToolResult:
        """Run the primary lookup, falling back once if it raises.

        Args:
            parameters: Tool input parameters

        Returns:
            ToolResult stamped with the total execution time
        """
        if not self.enabled:
            logger.debug(f"{self.tool_name} is disabled, skipping lookup")
            return ToolResult(self.tool_name, ToolStatus.DISABLED, error="Tool is disabled")

        start_time = time.monotonic()
        try:
            result = await self.execute(parameters)
        except Exception as e:
            logger.info(f"{self.tool_name} lookup failed ({e!r}), trying fallback")
            result = await self.fallback(parameters, e)

        result.execution_time_ms = int((time.monotonic() - start_time) * 1000)
        return result

    def validate_parameters(self, parameters: dict[str, Any], required_fields: list) -> None:
        """Check that required parameters are present and non-empty.

        Raises:
            ValueError: If required fields are missing
        """
        missing = [name for name in required_fields if not parameters.get(name)]
        if missing:
            raise ValueError(f"Missing required parameters: {missing}")
