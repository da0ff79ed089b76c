"""Rule-based intent extraction: reply language and market-data requests."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from chatcore.models.generation import IntentKind, Language, MarketIntent

logger = logging.getLogger(__name__)

VIETNAMESE_CHARS = re.compile(
    r"[àáạảãâầấậẩẫăằắặẳẵèéẹẻẽêềếệểễìíịỉĩòóọỏõôồốộổỗơờớợởỡùúụủũưừứựửữỳýỵỷỹđ]",
    re.IGNORECASE,
)

MARKET_KEYWORDS = (
    "price",
    "value",
    "worth",
    "giá",
    "bao nhiêu",
    "calculate",
    "profit",
    "interest",
    "tính",
    "lãi",
    "coin",
    "token",
)

# Token symbols and names mapped to provider ids
TOKEN_ALIASES = {
    "onfa": "onfa",
    "oft": "onfa",
    "btc": "bitcoin",
    "eth": "ethereum",
    "bnb": "binancecoin",
    "usdt": "tether",
}

# Tickers recognized inside longer messages, checked in order
KNOWN_TICKERS = (
    (re.compile(r"\b(?:oft|onfa)\b"), "onfa"),
    (re.compile(r"\b(?:btc|bitcoin)\b"), "bitcoin"),
    (re.compile(r"\b(?:eth|ethereum)\b"), "ethereum"),
    (re.compile(r"\bbnb\b"), "binancecoin"),
)

MIN_PHRASE_LENGTH = 2
MAX_PHRASE_LENGTH = 19

CALCULATION_PATTERN = re.compile(
    r"(?:calculate|tính|lãi|profit|interest)\s+(?:(?:for|cho)\s+)?"
    r"(\d[\d,]*(?:\.\d+)?)\s+([a-z0-9]+)"
)
# "giá trị" must come before "giá"
PRICE_PATTERN = re.compile(r"(?:giá trị|price|giá|value)\s+(?:(?:\bof\b|của|là)\s+)?([a-z0-9\s]+)")
FILLER_WORDS = re.compile(r"price|giá|coin|token")


def detect_language(message: str) -> Language:
    """Vietnamese if the message has any Vietnamese diacritic, else English."""
    if VIETNAMESE_CHARS.search(message):
        return Language.VIETNAMESE
    return Language.ENGLISH


def resolve_alias(token_phrase: str) -> str:
    """Map a token symbol or name to its provider id; unknown phrases pass through."""
    clean = token_phrase.lower().strip()
    return TOKEN_ALIASES.get(clean, clean)


@dataclass(frozen=True)
class IntentRule:
    """A named extraction rule; ``extract`` returns None when it does not apply."""

    name: str
    extract: Callable[[str], MarketIntent | None]


def _calculation(text: str) -> MarketIntent | None:
    match = CALCULATION_PATTERN.search(text)
    if not match:
        return None
    amount = float(match.group(1).replace(",", ""))
    return MarketIntent(IntentKind.CALCULATION, match.group(2).strip(), amount)


def _price(text: str) -> MarketIntent | None:
    match = PRICE_PATTERN.search(text)
    if not match:
        return None
    return MarketIntent(IntentKind.PRICE, match.group(1).strip())


def _short_message(text: str) -> MarketIntent | None:
    if len(text.split()) > 2:
        return None
    return MarketIntent(IntentKind.PRICE, FILLER_WORDS.sub("", text).strip())


def _ticker_scan(text: str) -> MarketIntent | None:
    for pattern, token_id in KNOWN_TICKERS:
        if pattern.search(text):
            return MarketIntent(IntentKind.PRICE, token_id)
    return None


MARKET_RULES = (
    IntentRule("calculation", _calculation),
    IntentRule("price", _price),
    IntentRule("short_message", _short_message),
    IntentRule("ticker_scan", _ticker_scan),
)


def extract_market_intent(message: str) -> MarketIntent | None:
    """Run the market rules in order; the first match wins.

    No keyword gate is applied here, see ``detect_market_intent``.

    Returns:
        MarketIntent with an accepted token phrase, or None
    """
    text = message.lower().strip()
    if not text:
        return None

    for rule in MARKET_RULES:
        intent = rule.extract(text)
        if intent is None:
            continue

        phrase_length = len(intent.token_phrase)
        if MIN_PHRASE_LENGTH <= phrase_length <= MAX_PHRASE_LENGTH:
            logger.debug(f"Market intent via {rule.name}: {intent}")
            return intent

        logger.debug(f"Rule {rule.name} matched but phrase {intent.token_phrase!r} was rejected")
        return None

    return None


def extract_token_phrase(message: str) -> str:
    """Raw token phrase for a message, or an empty string."""
    intent = extract_market_intent(message)
    return intent.token_phrase if intent else ""


def has_market_keyword(message: str) -> bool:
    text = message.lower()
    return any(keyword in text for keyword in MARKET_KEYWORDS)


def detect_market_intent(message: str) -> MarketIntent | None:
    """Market intent for messages that mention a market keyword."""
    if not has_market_keyword(message):
        return None
    return extract_market_intent(message)
