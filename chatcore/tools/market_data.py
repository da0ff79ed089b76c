"""Market data tool: live token quotes from a CoinGecko-compatible API."""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from chatcore.core.intent import resolve_alias
from chatcore.lib.cache_service import QUOTE_CACHE, CacheService
from chatcore.lib.config import MarketDataSettings
from chatcore.lib.errors import MarketDataUnavailable
from chatcore.lib.rate_limiter import RateLimiter
from chatcore.models.generation import IntentKind, MarketIntent, MarketQuote
from chatcore.tools.base_tool import BaseTool, ToolResult

logger = logging.getLogger(__name__)

SOURCE_LABEL = "CoinGecko"
MARKET_DATA_HEADER = "[REAL-TIME MARKET DATA]"
CALCULATION_HEADER = "[PROFIT CALCULATION REQUEST]"

# Display names for ids whose symbol users know better
DISPLAY_LABELS = {
    "onfa": "ONFA (OFT)",
}


class QuoteNotFound(Exception):
    """The provider has no price for this id."""


def token_label(token_id: str) -> str:
    return DISPLAY_LABELS.get(token_id, token_id.upper())


def _format_price(price: float) -> str:
    if price >= 1:
        return f"{price:,.2f}"
    return f"{price:.8f}".rstrip("0").rstrip(".") or "0"


def format_quote(quote: MarketQuote) -> str:
    """Render a quote as the fixed-shape market data block."""
    if quote.change_24h_percent is None:
        change = "N/A"
    else:
        trend = "📈" if quote.change_24h_percent >= 0 else "📉"
        sign = "+" if quote.change_24h_percent >= 0 else ""
        change = f"{sign}{quote.change_24h_percent:.2f}% {trend}"

    updated = quote.as_of.strftime("%Y-%m-%d %H:%M UTC") if quote.as_of else "unknown"

    return "\n".join(
        [
            MARKET_DATA_HEADER,
            f"- Token: {token_label(quote.token_id)}",
            f"- Price: ${_format_price(quote.price_usd)}",
            f"- 24h Change: {change}",
            f"- Updated: {updated} (Source: {SOURCE_LABEL})",
        ]
    )


def format_calculation(quote: MarketQuote, amount: float) -> str:
    """Render the deposit/term/profit context for a calculation request.

    This is context for the language model, not an answer: the rate and term
    live in the bot's knowledge base.
    """
    label = token_label(quote.token_id)
    value = quote.price_usd * amount

    return "\n".join(
        [
            CALCULATION_HEADER,
            f"- Deposit: {amount:,.8g} {label}",
            f"- Deposit value at current price: ${value:,.2f} "
            f"({amount:,.8g} x ${_format_price(quote.price_usd)})",
            f"- Term and interest rate: look these up for {label} in the Knowledge Base.",
            "- Compute the profit of this deposit over that term at that rate. Show the formula "
            "and give the result in tokens and in USD at the current price.",
            "- If the Knowledge Base has no rate or term for this token, say so instead of guessing.",
        ]
    )


class MarketDataTool(BaseTool):
    """Quote lookup by id, with a search-based fallback for unknown phrases."""

    def __init__(
        self,
        config: dict[str, Any],
        cache: CacheService | None = None,
        client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        """Initialize market data tool.

        Args:
            config: base_url, api_key, timeout_seconds, enabled
            cache: Shared cache service for the quote cache
            client: HTTP client (created when omitted)
            rate_limiter: Optional limiter guarding provider calls
        """
        super().__init__(config)
        self.base_url = config.get("base_url", MarketDataSettings.base_url).rstrip("/")
        self.api_key = config.get("api_key")
        self.timeout_seconds = config.get("timeout_seconds", 5.0)
        self.cache = cache or CacheService()
        self.client = client or httpx.AsyncClient(timeout=self.timeout_seconds)
        self.rate_limiter = rate_limiter

    @classmethod
    def from_settings(cls, settings: MarketDataSettings, cache: CacheService) -> "MarketDataTool":
        return cls(
            {
                "enabled": settings.enabled,
                "base_url": settings.base_url,
                "api_key": settings.api_key,
                "timeout_seconds": settings.timeout_seconds,
            },
            cache=cache,
            rate_limiter=RateLimiter(calls_per_minute=settings.calls_per_minute),
        )

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"x-cg-demo-api-key": self.api_key}

    async def _throttle(self) -> None:
        if self.rate_limiter and not await self.rate_limiter.acquire():
            raise MarketDataUnavailable("Market data rate limit reached")

    async def _fetch_price(self, coin_id: str) -> MarketQuote:
        """Price-by-id lookup.

        Raises:
            QuoteNotFound: If the provider has no price for the id
            httpx.HTTPError: On transport or HTTP status errors
            MarketDataUnavailable: If rate limited
        """
        await self._throttle()
        response = await self.client.get(
            f"{self.base_url}/simple/price",
            params={
                "ids": coin_id,
                "vs_currencies": "usd",
                "include_24hr_change": "true",
                "include_last_updated_at": "true",
            },
            headers=self._headers(),
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()

        data = response.json().get(coin_id)
        if not data or data.get("usd") is None:
            raise QuoteNotFound(coin_id)

        updated = data.get("last_updated_at")
        quote = MarketQuote(
            token_id=coin_id,
            price_usd=float(data["usd"]),
            change_24h_percent=data.get("usd_24h_change"),
            as_of=datetime.fromtimestamp(updated, UTC) if updated else None,
        )
        self.cache.cache(QUOTE_CACHE).set(coin_id, quote)
        return quote

    async def _search(self, query: str) -> str | None:
        """Resolve free text to a provider id via the search endpoint."""
        await self._throttle()
        response = await self.client.get(
            f"{self.base_url}/search",
            params={"query": query},
            headers=self._headers(),
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()

        coins = response.json().get("coins") or []
        if not coins:
            return None
        return coins[0].get("id")

    async def execute(self, parameters: dict[str, Any]) -> ToolResult:
        """Direct lookup of a token phrase by (aliased) id.

        Raises:
            QuoteNotFound: Handled by ``fallback`` through a search
        """
        self.validate_parameters(parameters, ["query"])
        coin_id = resolve_alias(parameters["query"])

        quote = self.cache.cache(QUOTE_CACHE).get(coin_id)
        if quote is None:
            quote = await self._fetch_price(coin_id)
        else:
            logger.debug(f"Quote cache hit: {coin_id}")

        return ToolResult.success(self.tool_name, quote=quote)

    async def fallback(self, parameters: dict[str, Any], error: Exception) -> ToolResult:
        """Search for an unknown phrase and retry the direct lookup once."""
        query = str(parameters.get("query", "")).lower().strip()

        if not isinstance(error, QuoteNotFound):
            logger.warning(f"Market data unavailable for {query!r}: {error}")
            return ToolResult.failure(self.tool_name, str(error))

        try:
            coin_id = await self._search(query)
            if not coin_id:
                return ToolResult.failure(
                    self.tool_name, f"No token matches {query!r}", fallback_used=True
                )

            quote = self.cache.cache(QUOTE_CACHE).get(coin_id)
            if quote is None:
                quote = await self._fetch_price(coin_id)
        except (httpx.HTTPError, QuoteNotFound, MarketDataUnavailable, ValueError) as e:
            logger.warning(f"Market data search failed for {query!r}: {e}")
            return ToolResult.failure(self.tool_name, str(e), fallback_used=True)

        logger.info(f"Resolved {query!r} to {coin_id} via search")
        return ToolResult.success(self.tool_name, fallback_used=True, quote=quote)

    async def lookup(self, token_phrase: str) -> MarketQuote | None:
        """Quote for a token phrase, or None when market data is unavailable."""
        result = await self.execute_with_fallback({"query": token_phrase})
        if not result.ok:
            return None
        return result.data["quote"]

    async def build_context(self, intent: MarketIntent) -> str | None:
        """Prompt context for a market intent, or None without data."""
        quote = await self.lookup(intent.token_phrase)
        if quote is None:
            return None

        context = format_quote(quote)
        if intent.kind == IntentKind.CALCULATION and intent.amount is not None:
            context += "\n\n" + format_calculation(quote, intent.amount)
        return context

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
