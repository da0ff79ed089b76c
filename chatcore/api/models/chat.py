"""Reply endpoint models (Pydantic schemas)."""

from typing import Literal

from pydantic import BaseModel, Field

from chatcore.models.generation import Attempt, Language, Platform
from chatcore.models.profile import BotProfile

# ============================================================================
# Request Models
# ============================================================================


class ReplyRequest(BaseModel):
    """One user message for one bot, sent by a platform adapter."""

    profile: BotProfile
    message: str = Field(min_length=1)
    platform: Platform = Platform.WEBSITE
    # "telegram_html" converts the reply for Telegram's HTML parse mode
    output_format: Literal["text", "telegram_html"] = "text"


class CacheInvalidationRequest(BaseModel):
    bot_id: str = Field(min_length=1)


# ============================================================================
# Response Models
# ============================================================================


class ReplyResponse(BaseModel):
    """Generated reply with diagnostics."""

    reply: str
    platform: Platform
    attempt: Attempt
    language: Language
    market_data_used: bool = False
    elapsed_ms: int = 0


class ReplyChunk(BaseModel):
    """Streaming chunk."""

    content: str


class CacheInvalidationResponse(BaseModel):
    bot_id: str
    evicted: int
