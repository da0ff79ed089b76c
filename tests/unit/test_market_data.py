"""Tests for the market data tool against a mocked CoinGecko API."""

from datetime import UTC, datetime

import httpx
import pytest

from chatcore.lib.rate_limiter import RateLimiter
from chatcore.models.generation import IntentKind, MarketIntent, MarketQuote
from chatcore.tools.market_data import (
    CALCULATION_HEADER,
    MARKET_DATA_HEADER,
    MarketDataTool,
    format_calculation,
    format_quote,
)

BASE_URL = "https://coingecko.test/api/v3"

PRICES = {
    "bitcoin": {"usd": 65000.5, "usd_24h_change": 1.234, "last_updated_at": 1792396800},
    "onfa": {"usd": 0.5, "usd_24h_change": -2.5, "last_updated_at": 1792396800},
    "pepe-token": {"usd": 0.0000123, "usd_24h_change": 10.0, "last_updated_at": 1792396800},
}
SEARCH = {"pepe": [{"id": "pepe-token", "symbol": "PEPE"}]}


class FakeCoinGecko:
    """Records requests and answers like the price and search endpoints."""

    def __init__(self, fail_with=None, status_code=200):
        self.requests = []
        self.fail_with = fail_with
        self.status_code = status_code

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "boom"})

        if request.url.path.endswith("/simple/price"):
            coin_id = request.url.params["ids"]
            return httpx.Response(200, json={coin_id: PRICES[coin_id]} if coin_id in PRICES else {})
        if request.url.path.endswith("/search"):
            return httpx.Response(200, json={"coins": SEARCH.get(request.url.params["query"], [])})
        return httpx.Response(404)

    def paths(self):
        return [request.url.path.rsplit("/", 1)[-1] for request in self.requests]


def make_tool(api, cache_service, api_key=None, rate_limiter=None, enabled=True):
    client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    return MarketDataTool(
        {"base_url": BASE_URL, "api_key": api_key, "enabled": enabled},
        cache=cache_service,
        client=client,
        rate_limiter=rate_limiter,
    )


@pytest.mark.asyncio
async def test_direct_lookup(cache_service):
    api = FakeCoinGecko()
    tool = make_tool(api, cache_service)

    quote = await tool.lookup("BTC")

    assert quote.token_id == "bitcoin"
    assert quote.price_usd == 65000.5
    assert quote.change_24h_percent == 1.234
    assert quote.as_of == datetime.fromtimestamp(1792396800, UTC)
    assert api.paths() == ["price"]
    assert api.requests[0].url.params["vs_currencies"] == "usd"
    await tool.close()


@pytest.mark.asyncio
async def test_alias_maps_oft_to_onfa(cache_service):
    api = FakeCoinGecko()
    tool = make_tool(api, cache_service)

    quote = await tool.lookup("oft")

    assert quote.token_id == "onfa"
    assert api.requests[0].url.params["ids"] == "onfa"


@pytest.mark.asyncio
async def test_quote_cache(cache_service, clock):
    api = FakeCoinGecko()
    tool = make_tool(api, cache_service)

    await tool.lookup("bitcoin")
    await tool.lookup("btc")
    assert len(api.requests) == 1

    clock.advance(61)
    await tool.lookup("bitcoin")
    assert len(api.requests) == 2


@pytest.mark.asyncio
async def test_search_fallback_retries_once(cache_service):
    api = FakeCoinGecko()
    tool = make_tool(api, cache_service)

    result = await tool.execute_with_fallback({"query": "pepe"})

    assert result.ok
    assert result.fallback_used
    assert result.data["quote"].token_id == "pepe-token"
    assert api.paths() == ["price", "search", "price"]


@pytest.mark.asyncio
async def test_unknown_token_returns_none(cache_service):
    api = FakeCoinGecko()
    tool = make_tool(api, cache_service)

    assert await tool.lookup("nosuchcoin") is None
    assert api.paths() == ["price", "search"]


@pytest.mark.asyncio
async def test_network_failure_absorbed(cache_service):
    api = FakeCoinGecko(fail_with=httpx.ConnectError("connection refused"))
    tool = make_tool(api, cache_service)

    assert await tool.lookup("bitcoin") is None
    # Transport errors skip the search fallback
    assert api.paths() == ["price"]


@pytest.mark.asyncio
async def test_http_error_absorbed(cache_service):
    tool = make_tool(FakeCoinGecko(status_code=500), cache_service)
    assert await tool.lookup("bitcoin") is None


@pytest.mark.asyncio
async def test_api_key_header(cache_service):
    api = FakeCoinGecko()
    tool = make_tool(api, cache_service, api_key="demo-key")

    await tool.lookup("bitcoin")

    assert api.requests[0].headers["x-cg-demo-api-key"] == "demo-key"


@pytest.mark.asyncio
async def test_rate_limit_absorbed(cache_service, clock):
    api = FakeCoinGecko()
    tool = make_tool(api, cache_service, rate_limiter=RateLimiter(calls_per_minute=1, clock=clock))

    assert await tool.lookup("bitcoin") is not None
    assert await tool.lookup("onfa") is None
    assert len(api.requests) == 1


@pytest.mark.asyncio
async def test_disabled_tool_makes_no_calls(cache_service):
    api = FakeCoinGecko()
    tool = make_tool(api, cache_service, enabled=False)

    assert await tool.lookup("bitcoin") is None
    assert api.requests == []


@pytest.mark.asyncio
async def test_build_context_for_price(cache_service):
    tool = make_tool(FakeCoinGecko(), cache_service)

    context = await tool.build_context(MarketIntent(IntentKind.PRICE, "btc"))

    assert context.startswith(MARKET_DATA_HEADER)
    assert CALCULATION_HEADER not in context


@pytest.mark.asyncio
async def test_build_context_for_calculation(cache_service):
    tool = make_tool(FakeCoinGecko(), cache_service)

    context = await tool.build_context(MarketIntent(IntentKind.CALCULATION, "oft", 1000))

    assert MARKET_DATA_HEADER in context
    assert CALCULATION_HEADER in context
    assert "$500.00" in context


@pytest.mark.asyncio
async def test_build_context_without_data(cache_service):
    tool = make_tool(FakeCoinGecko(), cache_service)
    assert await tool.build_context(MarketIntent(IntentKind.PRICE, "nosuchcoin")) is None


class TestFormatting:
    def test_quote_block(self):
        quote = MarketQuote("bitcoin", 65000.5, 1.234, datetime(2026, 10, 19, 8, 0, tzinfo=UTC))

        block = format_quote(quote)

        assert block.splitlines() == [
            "[REAL-TIME MARKET DATA]",
            "- Token: BITCOIN",
            "- Price: $65,000.50",
            "- 24h Change: +1.23% 📈",
            "- Updated: 2026-10-19 08:00 UTC (Source: CoinGecko)",
        ]

    def test_small_price_and_negative_change(self):
        block = format_quote(MarketQuote("onfa", 0.0123, -2.5))

        assert "- Token: ONFA (OFT)" in block
        assert "- Price: $0.0123" in block
        assert "- 24h Change: -2.50% 📉" in block
        assert "- Updated: unknown" in block

    def test_missing_change(self):
        assert "- 24h Change: N/A" in format_quote(MarketQuote("bitcoin", 1.0))

    def test_calculation_block(self):
        block = format_calculation(MarketQuote("onfa", 0.5), 2500)

        assert block.startswith(CALCULATION_HEADER)
        assert "- Deposit: 2,500 ONFA (OFT)" in block
        assert "$1,250.00" in block
        assert "Knowledge Base" in block
