"""Unit tests for aggregator fetchers (HTTP mocked with httpx.MockTransport)."""

import asyncio

import httpx
import pytest

from tokenprice.src.fetchers import (
    BaseFetcher,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    get_available_fetchers,
    get_fetcher,
    positive_price,
)
from tokenprice.src.fetchers.jupiter import WSOL_MINT

TOKEN = "0xAbCdEf0000000000000000000000000000000001"
MINT = "TokenMint1111111111111111111111111111111111"


def run_with(handler, make_call):
    """Run a fetcher call with the shared client routed to ``handler``."""

    async def main():
        BaseFetcher.set_shared_client(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        try:
            return await make_call()
        finally:
            await BaseFetcher.close_shared_client()

    return asyncio.run(main())


def json_handler(body, status: int = 200, requests: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status, json=body)

    return handler


class TestRegistry:
    """Test fetcher registration."""

    def test_available(self) -> None:
        """Every aggregator should be registered."""
        assert get_available_fetchers() == [
            "coinbase",
            "coingecko",
            "dexscreener",
            "geckoterminal",
            "jupiter",
            "raydium",
        ]

    def test_unknown(self) -> None:
        """Unknown names should raise ValueError."""
        with pytest.raises(ValueError, match="Unknown fetcher"):
            get_fetcher("binance")

    def test_supports_chain(self) -> None:
        """Chain support is declared per fetcher."""
        assert get_fetcher("jupiter").supports_chain("solana")
        assert not get_fetcher("jupiter").supports_chain("bsc")
        assert not get_fetcher("coinbase").supports_chain("base")


class TestPositivePrice:
    """Test price coercion."""

    @pytest.mark.parametrize(
        "value,expected",
        [("0.0061", 0.0061), (2, 2.0), ("0", None), (-1, None), ("abc", None), (None, None), (True, None)],
    )
    def test_values(self, value, expected) -> None:
        """Only positive finite numbers are prices."""
        assert positive_price(value) == expected


class TestDexScreener:
    """Test DexScreenerFetcher."""

    def test_picks_deepest_pair_on_chain(self) -> None:
        """Highest-liquidity pair on the chain with the token as base wins."""
        body = {
            "pairs": [
                {"chainId": "bsc", "baseToken": {"address": TOKEN.lower()}, "priceUsd": "0.010", "liquidity": {"usd": 1000}},
                {"chainId": "bsc", "baseToken": {"address": TOKEN}, "priceUsd": "0.011", "liquidity": {"usd": 50000}},
                {"chainId": "base", "baseToken": {"address": TOKEN}, "priceUsd": "9.0", "liquidity": {"usd": 10**9}},
                {"chainId": "bsc", "baseToken": {"address": "0xother"}, "priceUsd": "5.0", "liquidity": {"usd": 10**9}},
            ]
        }
        price = run_with(json_handler(body), lambda: get_fetcher("dexscreener").fetch_token("bsc", TOKEN))
        assert price == 0.011

    def test_http_error(self) -> None:
        """Non-2xx responses are source failures, not misses."""
        with pytest.raises(FetcherHTTPError) as exc_info:
            run_with(
                json_handler({"error": "rate limited"}, status=429),
                lambda: get_fetcher("dexscreener").fetch_token("bsc", TOKEN),
            )
        assert exc_info.value.status_code == 429

    def test_transport_error(self) -> None:
        """Connection failures should raise FetcherError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetcherError, match="Request failed"):
            run_with(handler, lambda: get_fetcher("dexscreener").fetch_token("bsc", TOKEN))

    def test_no_pairs(self) -> None:
        """An unknown token should yield None."""
        price = run_with(json_handler({"pairs": None}), lambda: get_fetcher("dexscreener").fetch_token("base", TOKEN))
        assert price is None


class TestGeckoTerminal:
    """Test GeckoTerminalFetcher."""

    def test_case_insensitive_key(self) -> None:
        """Token prices are keyed by lower-cased address."""
        requests: list[httpx.Request] = []
        body = {"data": {"attributes": {"token_prices": {TOKEN.lower(): "1.25"}}}}
        price = run_with(
            json_handler(body, requests=requests),
            lambda: get_fetcher("geckoterminal").fetch_token("base", TOKEN),
        )
        assert price == 1.25
        assert "/simple/networks/base/token_price/" in requests[0].url.path

    def test_malformed(self) -> None:
        """Unexpected shapes should yield None."""
        price = run_with(json_handler({"data": []}), lambda: get_fetcher("geckoterminal").fetch_token("bsc", TOKEN))
        assert price is None

    def test_unknown_token_404(self) -> None:
        """A 404 for an unknown address is a miss, not a failure."""
        price = run_with(
            json_handler({"errors": [{"status": "404"}]}, status=404),
            lambda: get_fetcher("geckoterminal").fetch_token("bsc", TOKEN),
        )
        assert price is None

    def test_server_error(self) -> None:
        """Other non-2xx statuses still raise."""
        with pytest.raises(FetcherHTTPError):
            run_with(json_handler({}, status=500), lambda: get_fetcher("geckoterminal").fetch_token("bsc", TOKEN))


class TestCoinGecko:
    """Test CoinGeckoFetcher."""

    def test_reference_price(self) -> None:
        """Symbol lookups go through /simple/price with CoinGecko ids."""
        requests: list[httpx.Request] = []
        price = run_with(
            json_handler({"binancecoin": {"usd": 612.3}}, requests=requests),
            lambda: get_fetcher("coingecko").fetch("bnb", "usd"),
        )
        assert price == 612.3
        assert requests[0].url.params["ids"] == "binancecoin"

    def test_demo_key_header(self) -> None:
        """Demo keys use the free host with the demo header."""
        requests: list[httpx.Request] = []
        fetcher = get_fetcher("coingecko", api_key="demo:CG-abc")
        run_with(json_handler({"ethereum": {"usd": 3000}}, requests=requests), lambda: fetcher.fetch("eth", "usd"))
        assert requests[0].url.host == "api.coingecko.com"
        assert requests[0].headers["x-cg-demo-api-key"] == "CG-abc"

    def test_pro_key_host(self) -> None:
        """Keys without prefix are pro keys."""
        fetcher = get_fetcher("coingecko", api_key="pro-key")
        assert fetcher.base_url == "https://pro-api.coingecko.com/api/v3"
        assert fetcher.headers == {"x-cg-pro-api-key": "pro-key"}

    def test_empty_demo_key(self) -> None:
        """A bare demo: prefix is a configuration error."""
        with pytest.raises(FetcherConfigError):
            get_fetcher("coingecko", api_key="demo:")

    def test_token_price(self) -> None:
        """Contract lookups accept lower-cased keys in the response."""
        body = {TOKEN.lower(): {"usd": 0.004}}
        price = run_with(json_handler(body), lambda: get_fetcher("coingecko").fetch_token("bsc", TOKEN))
        assert price == 0.004

    def test_unlisted_token(self) -> None:
        """An empty response should yield None."""
        price = run_with(json_handler({}), lambda: get_fetcher("coingecko").fetch_token("solana", MINT))
        assert price is None


class TestCoinbase:
    """Test CoinbaseFetcher."""

    def test_ticker(self) -> None:
        """Ticker price should be parsed from the string field."""
        requests: list[httpx.Request] = []
        price = run_with(
            json_handler({"price": "145.10"}, requests=requests),
            lambda: get_fetcher("coinbase").fetch("sol", "usd"),
        )
        assert price == 145.10
        assert requests[0].url.path == "/products/SOL-USD/ticker"


class TestJupiter:
    """Test JupiterFetcher."""

    def test_sol_reference(self) -> None:
        """SOL/USD is looked up through the wrapped SOL mint."""
        body = {"data": {WSOL_MINT: {"id": WSOL_MINT, "price": "150.5"}}}
        price = run_with(json_handler(body), lambda: get_fetcher("jupiter").fetch("sol", "usd"))
        assert price == 150.5

    def test_missing_mint(self) -> None:
        """A mint absent from the response should yield None."""
        price = run_with(json_handler({"data": {}}), lambda: get_fetcher("jupiter").fetch_token("solana", MINT))
        assert price is None

    def test_reference_failure_yields_none(self) -> None:
        """Symbol lookups swallow request failures like the other fetchers."""
        price = run_with(json_handler({}, status=503), lambda: get_fetcher("jupiter").fetch("sol", "usd"))
        assert price is None


class TestRaydium:
    """Test RaydiumFetcher."""

    def test_sol_quoted_price(self) -> None:
        """Price is taken from the highest-TVL pool, in SOL."""
        body = {
            "success": True,
            "data": {
                "data": [
                    {"id": "small", "tvl": 10, "mintA": {"address": MINT}, "mintB": {"address": WSOL_MINT},
                     "mintAmountA": 100, "mintAmountB": 100},
                    {"id": "deep", "tvl": 5000, "mintA": {"address": WSOL_MINT}, "mintB": {"address": MINT},
                     "mintAmountA": 10, "mintAmountB": 2000},
                ]
            },
        }
        fetcher = get_fetcher("raydium")
        assert fetcher.quote == "native"
        price = run_with(json_handler(body), lambda: fetcher.fetch_token("solana", MINT))
        assert price == pytest.approx(0.005)

    def test_failure_flag(self) -> None:
        """success=false is an API failure."""
        with pytest.raises(FetcherError, match="API returned failure"):
            run_with(json_handler({"success": False}), lambda: get_fetcher("raydium").fetch_token("solana", MINT))

    def test_no_pools(self) -> None:
        """A successful reply without token/SOL pools is a miss."""
        body = {"success": True, "data": {"data": []}}
        price = run_with(json_handler(body), lambda: get_fetcher("raydium").fetch_token("solana", MINT))
        assert price is None
