"""Request, result and intent models for reply generation."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from chatcore.models.profile import BotProfile


class Platform(str, Enum):
    """Platform a message arrived from."""

    WEBSITE = "website"
    TELEGRAM = "telegram"
    DISCORD = "discord"
    WHATSAPP = "whatsapp"
    WHATSAPP_WEB = "whatsapp_web"
    FACEBOOK = "facebook"
    ZALO = "zalo"


class Language(str, Enum):
    """Reply language detected from the user's message."""

    VIETNAMESE = "Vietnamese"
    ENGLISH = "English"


class Attempt(str, Enum):
    """Generation tier that produced a reply."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class IntentKind(str, Enum):
    PRICE = "price"
    CALCULATION = "calculation"


@dataclass(frozen=True)
class MarketIntent:
    """A detected price or profit-calculation request."""

    kind: IntentKind
    token_phrase: str
    amount: float | None = None


@dataclass(frozen=True)
class MarketQuote:
    """Live quote for one token."""

    token_id: str
    price_usd: float
    change_24h_percent: float | None = None
    as_of: datetime | None = None


@dataclass
class GenerationRequest:
    """One user message to answer for one bot."""

    profile: BotProfile | None
    message: str
    platform: Platform = Platform.WEBSITE


@dataclass
class GenerationResult:
    """Successful reply with diagnostics."""

    reply_text: str
    attempt: Attempt = Attempt.PRIMARY
    language: Language = Language.ENGLISH
    market_data_used: bool = False
    elapsed_ms: int = 0
    metadata: dict = field(default_factory=dict)
