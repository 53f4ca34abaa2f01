"""Unit tests for PoolLocator and venue discovery."""

import asyncio
from fractions import Fraction

import pytest

from tokenprice.src.ChainConfig import BSC_USDT, BSC_WBNB, QuoteAsset
from tokenprice.src.decoders import Q96, ReserveSnapshot
from tokenprice.src.errors import NotFoundError, RpcError
from tokenprice.src.PoolDescriptor import PoolDescriptor, Protocol, QuoteAssetClass
from tokenprice.src.PoolLocator import PoolLocator
from tokenprice.src.venues import (
    PancakeSwapV2Venue,
    PancakeSwapV3Venue,
    VenueCandidate,
    is_zero_address,
)

TOKEN = "0x1111111111111111111111111111111111111111"
PAIR = "0x2222222222222222222222222222222222222222"


def make_candidate(name: str, venue: str, liquidity) -> VenueCandidate:
    descriptor = PoolDescriptor(
        chain="bsc",
        protocol=Protocol.CONSTANT_PRODUCT,
        variant=name,
        venue_identifier=venue,
        quote_asset_class=QuoteAssetClass.NATIVE,
        pair_symbol="WBNB",
        pair_asset=BSC_WBNB,
        pair_decimals=18,
    )
    return VenueCandidate(descriptor=descriptor, snapshot=None, liquidity=Fraction(liquidity))


class FakeVenue:
    """Venue returning preset candidates (or raising)."""

    def __init__(self, name: str, candidates=(), error: Exception | None = None) -> None:
        self.name = name
        self.candidates = list(candidates)
        self.error = error
        self.calls = 0

    async def find_candidates(self, token: str, decimals: int) -> list[VenueCandidate]:
        self.calls += 1
        if self.error:
            raise self.error
        return self.candidates

    async def token_decimals(self, token: str) -> int:
        return 9


class FakeEvmClient:
    """EVM client answering contract calls from a dict."""

    chain = "bsc"

    def __init__(self, responses: dict) -> None:
        self.responses = responses
        self.calls: list[tuple] = []

    async def call(self, address: str, abi_name: str, function: str, *args):
        self.calls.append((address, function, args))
        key = (function, *args) if (function, *args) in self.responses else function
        value = self.responses.get(key)
        if isinstance(value, Exception):
            raise value
        return value

    async def decimals(self, token: str) -> int:
        return 18


class TestPoolLocatorSelection:
    """Test best-venue selection."""

    def test_picks_max_liquidity(self) -> None:
        """The deepest candidate across venues should win."""
        locator = PoolLocator(
            {
                "bsc": [
                    FakeVenue("pancakeswap_v3", [make_candidate("pancakeswap_v3", "0xa", 10)]),
                    FakeVenue("pancakeswap_v2", [make_candidate("pancakeswap_v2", "0xb", 50)]),
                ]
            }
        )
        descriptor = asyncio.run(locator.locate_pool("bsc", TOKEN, 18))
        assert descriptor.variant == "pancakeswap_v2"

    def test_ties_prefer_earlier_venue(self) -> None:
        """Equal liquidity should keep the earlier (preferred) venue."""
        locator = PoolLocator(
            {
                "bsc": [
                    FakeVenue("pancakeswap_v3", [make_candidate("pancakeswap_v3", "0xa", 20)]),
                    FakeVenue("pancakeswap_v2", [make_candidate("pancakeswap_v2", "0xb", 20)]),
                ]
            }
        )
        descriptor = asyncio.run(locator.locate_pool("bsc", TOKEN, 18))
        assert descriptor.variant == "pancakeswap_v3"

    def test_zero_liquidity_never_wins(self) -> None:
        """A lone zero-liquidity candidate should raise NotFoundError."""
        locator = PoolLocator(
            {"bsc": [FakeVenue("pancakeswap_v2", [make_candidate("pancakeswap_v2", "0xb", 0)])]}
        )
        with pytest.raises(NotFoundError):
            asyncio.run(locator.locate_pool("bsc", TOKEN, 18))

    def test_failing_venue_skipped(self) -> None:
        """An adapter raising should not stop the others."""
        failing = FakeVenue("pancakeswap_v3", error=RpcError("timeout"))
        broken = FakeVenue("broken", error=KeyError("slot0"))
        working = FakeVenue("pancakeswap_v2", [make_candidate("pancakeswap_v2", "0xb", 5)])
        locator = PoolLocator({"bsc": [failing, broken, working]})

        descriptor = asyncio.run(locator.locate_pool("bsc", TOKEN, 18))
        assert descriptor.variant == "pancakeswap_v2"
        assert failing.calls == 1

    def test_no_venues(self) -> None:
        """An unconfigured chain should raise NotFoundError."""
        locator = PoolLocator({})
        with pytest.raises(NotFoundError):
            asyncio.run(locator.locate_pool("base", TOKEN, 18))

    def test_reads_decimals_when_missing(self) -> None:
        """decimals=None should be read through the first adapter."""
        locator = PoolLocator({"solana": [FakeVenue("raydium_cpmm")]})
        assert asyncio.run(locator.token_decimals("solana", "Mint")) == 9

    def test_get_venue(self) -> None:
        """get_venue should match on variant name."""
        v2 = FakeVenue("pancakeswap_v2")
        locator = PoolLocator({"bsc": [FakeVenue("pancakeswap_v3"), v2]})
        assert locator.get_venue("bsc", "pancakeswap_v2") is v2
        with pytest.raises(NotFoundError):
            locator.get_venue("bsc", "uniswap_v4")


class TestV2Venue:
    """Test constant-product discovery through a fake client."""

    def test_finds_pair_and_orders_reserves(self) -> None:
        """Reserves should be assigned by canonical token order."""
        client = FakeEvmClient(
            {
                ("getPair", TOKEN, BSC_WBNB): PAIR,
                "getReserves": (1_000_000 * 10**18, 10 * 10**18, 0),
            }
        )
        venue = PancakeSwapV2Venue(client, quote_assets=[
            QuoteAsset("WBNB", BSC_WBNB, 18, QuoteAssetClass.NATIVE),
        ])
        candidates = asyncio.run(venue.find_candidates(TOKEN, 18))

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.descriptor.venue_identifier == PAIR
        assert candidate.descriptor.quote_asset_class == QuoteAssetClass.NATIVE
        # TOKEN (0x11..) sorts before WBNB (0xbb..)
        assert candidate.snapshot == ReserveSnapshot(
            TOKEN, BSC_WBNB, 1_000_000 * 10**18, 10 * 10**18, 18, 18
        )
        assert candidate.liquidity == 1_000_010

    def test_first_quote_with_pool_wins(self) -> None:
        """Stable quotes should only be queried when the native pair is missing."""
        client = FakeEvmClient(
            {
                ("getPair", TOKEN, BSC_WBNB): "0x0000000000000000000000000000000000000000",
                ("getPair", TOKEN, BSC_USDT): PAIR,
                "getReserves": (10**18, 10**18, 0),
            }
        )
        venue = PancakeSwapV2Venue(client)
        candidates = asyncio.run(venue.find_candidates(TOKEN, 18))
        assert [c.descriptor.pair_symbol for c in candidates] == ["USDT"]
        assert candidates[0].descriptor.quote_asset_class == QuoteAssetClass.STABLE

    def test_zero_address(self) -> None:
        """Registries signal a missing pool with the zero address."""
        assert is_zero_address("0x0000000000000000000000000000000000000000")
        assert is_zero_address(None)
        assert not is_zero_address(PAIR)


class TestV3Venue:
    """Test concentrated-liquidity discovery through a fake client."""

    def test_skips_missing_and_uninitialized_tiers(self) -> None:
        """Only initialized pools should become candidates."""
        pools = {
            100: "0x0000000000000000000000000000000000000000",
            500: "0x3333333333333333333333333333333333333333",
            2500: "0x4444444444444444444444444444444444444444",
            10000: "0x0000000000000000000000000000000000000000",
        }

        class Client(FakeEvmClient):
            async def call(self, address, abi_name, function, *args):
                if function == "getPool":
                    return pools[args[2]]
                if function == "slot0":
                    sqrt = Q96 if address == pools[500] else 0
                    return (sqrt, 0, 0, 0, 0, 0, True)
                if function == "liquidity":
                    return 10**18
                raise AssertionError(function)

        venue = PancakeSwapV3Venue(Client({}), quote_assets=[
            QuoteAsset("WBNB", BSC_WBNB, 18, QuoteAssetClass.NATIVE),
        ])
        candidates = asyncio.run(venue.find_candidates(TOKEN, 18))
        assert [c.descriptor.fee_tier for c in candidates] == [500]
        assert candidates[0].descriptor.protocol == Protocol.CONCENTRATED_LIQUIDITY
        assert candidates[0].liquidity == 2
