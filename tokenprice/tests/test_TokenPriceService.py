"""Unit tests for TokenPriceService."""

import asyncio
import sqlite3

import pytest

from tokenprice.src.ChainConfig import BSC_WBNB
from tokenprice.src.errors import AllSourcesFailedError, NotFoundError, RpcError
from tokenprice.src.PoolDescriptor import (
    PoolDescriptor,
    PriceQuote,
    Protocol,
    QuoteAssetClass,
    QuoteSource,
)
from tokenprice.src.PoolInfoStore import InMemoryPoolInfoStore, SqlitePoolInfoStore
from tokenprice.src.TokenPriceService import (
    PriceRequest,
    TokenPriceService,
    build_fetchers,
    build_reference_sources,
)

TOKEN = "0x1111111111111111111111111111111111111111"
BAD_TOKEN = "0x9999999999999999999999999999999999999999"


def descriptor(venue: str = "0x2222222222222222222222222222222222222222") -> PoolDescriptor:
    return PoolDescriptor(
        chain="bsc",
        protocol=Protocol.CONSTANT_PRODUCT,
        variant="pancakeswap_v2",
        venue_identifier=venue,
        quote_asset_class=QuoteAssetClass.NATIVE,
        pair_symbol="WBNB",
        pair_asset=BSC_WBNB,
        pair_decimals=18,
    )


class FakeLocator:
    def __init__(self, found: PoolDescriptor | None) -> None:
        self.found = found

    async def locate_pool(self, chain, token, decimals=None):
        if self.found is None:
            raise NotFoundError(f"No liquid venue found for {token} on {chain}")
        return self.found


class FakeResolver:
    """Resolver returning a preset quote and recording cached descriptors."""

    def __init__(self, quote: PriceQuote | None, found: PoolDescriptor | None = None) -> None:
        self.quote = quote
        self.locator = FakeLocator(found)
        self.cached_seen: list[PoolDescriptor | None] = []

    async def resolve_price_usd(self, chain, token, decimals, cached_descriptor=None):
        self.cached_seen.append(cached_descriptor)
        if self.quote is None or token == BAD_TOKEN:
            raise AllSourcesFailedError(f"{chain}:{token}", [("fresh-venue", "not found")])
        return self.quote


class FakeEvmClient:
    chain = "bsc"

    def __init__(self, supply: int | Exception = 10**9 * 10**18, reserves=None) -> None:
        self.supply = supply
        self.reserves = reserves

    async def total_supply(self, token):
        if isinstance(self.supply, Exception):
            raise self.supply
        return self.supply

    async def call(self, address, abi_name, function, *args):
        assert function == "getReserves"
        return self.reserves

    async def decimals(self, token):
        return 18


def fresh_quote(price: float = 0.006) -> PriceQuote:
    return PriceQuote(price_usd=price, source=QuoteSource.FRESH_VENUE, descriptor=descriptor())


def broken_sqlite_store(tmp_path) -> SqlitePoolInfoStore:
    """SQLite store whose table was dropped through another connection."""
    path = str(tmp_path / "pools.db")
    store = SqlitePoolInfoStore(path)
    other = sqlite3.connect(path)
    with other:
        other.execute("DROP TABLE token_pools")
    other.close()
    return store


class TestGetPriceUsd:
    """Test single-token pricing."""

    def test_market_cap(self) -> None:
        """Market cap should be price times whole-token supply."""
        service = TokenPriceService(FakeResolver(fresh_quote()), clients={"bsc": FakeEvmClient()})
        price = asyncio.run(service.get_price_usd("bsc", TOKEN, 18))

        assert price.price_usd == 0.006
        assert price.market_cap == pytest.approx(6_000_000)
        assert price.market_cap_formatted == "$6.00M"
        assert price.source == QuoteSource.FRESH_VENUE

    def test_supply_failure_leaves_market_cap_empty(self) -> None:
        """An unreadable supply should not fail the price."""
        client = FakeEvmClient(supply=RpcError("timeout"))
        service = TokenPriceService(FakeResolver(fresh_quote()), clients={"bsc": client})
        price = asyncio.run(service.get_price_usd("bsc", TOKEN, 18))
        assert price.market_cap is None
        assert price.market_cap_formatted is None

    def test_fresh_venue_persisted(self) -> None:
        """A freshly located venue should be saved and reused next time."""
        store = InMemoryPoolInfoStore()
        resolver = FakeResolver(fresh_quote())
        service = TokenPriceService(resolver, store=store)

        asyncio.run(service.get_price_usd("bsc", TOKEN, 18, token_id="42"))
        assert store.get_pool_descriptor("42") == descriptor()

        asyncio.run(service.get_price_usd("bsc", TOKEN, 18, token_id="42"))
        assert resolver.cached_seen == [None, descriptor()]

    def test_cached_venue_not_rewritten(self) -> None:
        """Prices from the cached venue leave the store untouched."""
        store = InMemoryPoolInfoStore()
        store.save_pool_descriptor("42", descriptor("0x3333333333333333333333333333333333333333"))
        quote = PriceQuote(price_usd=1.0, source=QuoteSource.CACHED_VENUE, descriptor=descriptor())
        service = TokenPriceService(FakeResolver(quote), store=store)

        asyncio.run(service.get_price_usd("bsc", TOKEN, 18, token_id="42"))
        stored = store.get_pool_descriptor("42")
        assert stored.venue_identifier == "0x3333333333333333333333333333333333333333"

    def test_no_token_id_no_persistence(self) -> None:
        """Without a token id nothing is read from or written to the store."""
        store = InMemoryPoolInfoStore()
        resolver = FakeResolver(fresh_quote())
        service = TokenPriceService(resolver, store=store)
        asyncio.run(service.get_price_usd("bsc", TOKEN, 18))
        assert resolver.cached_seen == [None]

    def test_unsupported_chain(self) -> None:
        """Chains outside BSC, Base and Solana are rejected."""
        service = TokenPriceService(FakeResolver(fresh_quote()))
        with pytest.raises(ValueError, match="Unsupported chain"):
            asyncio.run(service.get_price_usd("ethereum", TOKEN, 18))

    def test_all_sources_failed_propagates(self) -> None:
        """The terminal error reaches the caller."""
        service = TokenPriceService(FakeResolver(None))
        with pytest.raises(AllSourcesFailedError):
            asyncio.run(service.get_price_usd("BSC", TOKEN, 18))


class TestFindAndPersistBestPool:
    """Test registration-time discovery."""

    def test_persists_descriptor(self) -> None:
        """The located venue should be saved under the token id."""
        store = InMemoryPoolInfoStore()
        service = TokenPriceService(FakeResolver(None, found=descriptor()), store=store)

        result = asyncio.run(service.find_and_persist_best_pool("7", "bsc", TOKEN, 18))
        assert result == descriptor()
        assert store.get_pool_descriptor("7") == descriptor()

    def test_not_found_returns_none(self) -> None:
        """Failed discovery should return None and store nothing."""
        store = InMemoryPoolInfoStore()
        service = TokenPriceService(FakeResolver(None, found=None), store=store)

        assert asyncio.run(service.find_and_persist_best_pool("7", "bsc", TOKEN, 18)) is None
        assert store.get_pool_descriptor("7") is None

    def test_store_failure_returns_none(self, tmp_path) -> None:
        """A write the database rejects should report None."""
        store = broken_sqlite_store(tmp_path)
        service = TokenPriceService(FakeResolver(None, found=descriptor()), store=store)

        assert asyncio.run(service.find_and_persist_best_pool("7", "bsc", TOKEN, 18)) is None
        store.close()


class TestGetPrices:
    """Test batch pricing."""

    def test_failures_become_none(self) -> None:
        """One failing token should not affect the others."""
        service = TokenPriceService(FakeResolver(fresh_quote()))
        results = asyncio.run(
            service.get_prices(
                [
                    PriceRequest("bsc", TOKEN, 18),
                    PriceRequest("bsc", BAD_TOKEN, 18),
                    PriceRequest("dogechain", TOKEN, 18),
                ]
            )
        )
        assert results[0].price_usd == 0.006
        assert results[1:] == [None, None]

    def test_store_errors_do_not_fail_batch(self, tmp_path) -> None:
        """A broken pool database should only cost the cached-venue lookup."""
        store = broken_sqlite_store(tmp_path)
        resolver = FakeResolver(fresh_quote())
        service = TokenPriceService(resolver, store=store)

        results = asyncio.run(
            service.get_prices(
                [
                    PriceRequest("bsc", TOKEN, 18, token_id="1"),
                    PriceRequest("bsc", TOKEN, 18),
                ]
            )
        )
        assert [r.price_usd for r in results] == [0.006, 0.006]
        assert resolver.cached_seen == [None, None]
        store.close()


class TestReferenceSources:
    """Test reference price source wiring."""

    def test_source_order(self) -> None:
        """On-chain reference venues come before aggregators."""
        clients = {"bsc": FakeEvmClient(), "base": FakeEvmClient(), "solana": FakeEvmClient()}
        fetchers = build_fetchers({"coingecko", "coinbase", "jupiter"})
        sources = build_reference_sources(clients, fetchers)

        assert [s.name for s in sources["bnb"]] == [
            "bsc:pancakeswap_v2:USDT",
            "bsc:pancakeswap_v2:BUSD",
            "coingecko",
            "coinbase",
        ]
        # No mainnet client: only the Base reference pool
        assert [s.name for s in sources["eth"]] == ["base:uniswap_v3:USDC", "coingecko", "coinbase"]
        assert [s.name for s in sources["sol"]][1:] == ["jupiter", "coingecko", "coinbase"]

    def test_venue_source_prices_reference_asset(self) -> None:
        """WBNB/USDT reserves of 1,000 / 600,000 price BNB at $600."""
        # USDT (0x55..) sorts before WBNB (0xbb..)
        client = FakeEvmClient(reserves=(600_000 * 10**18, 1_000 * 10**18, 0))
        sources = build_reference_sources({"bsc": client}, {})
        assert asyncio.run(sources["bnb"][0].fetch()) == pytest.approx(600.0)
