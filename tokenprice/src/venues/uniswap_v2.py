"""Uniswap V2 style constant-product venues (PancakeSwap V2, BaseSwap)."""

import logging

from ..ChainConfig import BASE_V2_FACTORY, PANCAKE_V2_FACTORY, QuoteAsset
from ..decoders import ReserveSnapshot, sort_tokens
from ..PoolDescriptor import PoolDescriptor, Protocol
from .base import BaseVenue, VenueCandidate, is_zero_address, register_venue

logger = logging.getLogger(__name__)


@register_venue
class UniswapV2Venue(BaseVenue):
    """Pairs registered in a V2 factory (``getPair``), priced from ``getReserves``.

    :cvar factory: Factory contract address.
    """

    name = "uniswap_v2"
    chain = "base"
    protocol = Protocol.CONSTANT_PRODUCT
    factory = BASE_V2_FACTORY

    async def find_pools_for_quote(
        self, token: str, decimals: int, quote: QuoteAsset
    ) -> list[VenueCandidate]:
        pair = await self.client.call(
            self.factory, "UniswapV2Factory", "getPair", token, quote.address
        )
        if is_zero_address(pair):
            return []
        snapshot = await self._read_reserves(pair, token, decimals, quote.address, quote.decimals)
        return [self.make_candidate(pair, quote, snapshot)]

    async def read_snapshot(
        self, descriptor: PoolDescriptor, token: str, decimals: int
    ) -> ReserveSnapshot:
        return await self._read_reserves(
            descriptor.venue_identifier,
            token,
            decimals,
            descriptor.pair_asset,
            descriptor.pair_decimals,
        )

    async def _read_reserves(
        self, pair: str, token: str, decimals: int, quote: str, quote_decimals: int
    ) -> ReserveSnapshot:
        reserve0, reserve1, _ = await self.client.call(pair, "UniswapV2Pair", "getReserves")
        # V2 factories sort token0 < token1 by address
        token0, _ = sort_tokens(token, quote)
        if token0 == token:
            return ReserveSnapshot(token, quote, reserve0, reserve1, decimals, quote_decimals)
        return ReserveSnapshot(quote, token, reserve0, reserve1, quote_decimals, decimals)


@register_venue
class PancakeSwapV2Venue(UniswapV2Venue):
    """PancakeSwap V2 on BSC."""

    name = "pancakeswap_v2"
    chain = "bsc"
    factory = PANCAKE_V2_FACTORY
