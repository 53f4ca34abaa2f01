"""Uniswap V3 style concentrated-liquidity venues (Uniswap V3, PancakeSwap V3).

Pools are looked up per fee tier through the factory's ``getPool`` and read
through ``slot0`` and ``liquidity``. PancakeSwap V3's ``slot0`` widens
``feeProtocol`` to uint32, so it ships its own pool ABI.
"""

import logging

from ..ChainConfig import BASE_UNISWAP_V3_FACTORY, PANCAKE_V3_FACTORY, QuoteAsset
from ..decoders import ConcentratedLiquiditySnapshot, sort_tokens
from ..PoolDescriptor import PoolDescriptor, Protocol
from .base import BaseVenue, VenueCandidate, is_zero_address, register_venue

logger = logging.getLogger(__name__)


@register_venue
class UniswapV3Venue(BaseVenue):
    """Uniswap V3 pools on Base.

    :cvar factory: Factory contract address.
    :cvar fee_tiers: Fee tiers probed, in hundredths of a bip.
    :cvar pool_abi: Packaged ABI name of the pool contract.
    """

    name = "uniswap_v3"
    chain = "base"
    protocol = Protocol.CONCENTRATED_LIQUIDITY
    factory = BASE_UNISWAP_V3_FACTORY
    fee_tiers = (100, 500, 3000, 10000)
    pool_abi = "UniswapV3Pool"

    async def find_pools_for_quote(
        self, token: str, decimals: int, quote: QuoteAsset
    ) -> list[VenueCandidate]:
        candidates = []
        for fee in self.fee_tiers:
            pool = await self.client.call(
                self.factory, "UniswapV3Factory", "getPool", token, quote.address, fee
            )
            if is_zero_address(pool):
                continue
            snapshot = await self._read_pool(pool, token, decimals, quote.address, quote.decimals)
            if snapshot.sqrt_price_x96 == 0:
                logger.debug(f"[{self.name}] Pool {pool} (fee {fee}) is not initialized")
                continue
            candidates.append(self.make_candidate(pool, quote, snapshot, fee_tier=fee))
        return candidates

    async def read_snapshot(
        self, descriptor: PoolDescriptor, token: str, decimals: int
    ) -> ConcentratedLiquiditySnapshot:
        return await self._read_pool(
            descriptor.venue_identifier,
            token,
            decimals,
            descriptor.pair_asset,
            descriptor.pair_decimals,
        )

    async def _read_pool(
        self, pool: str, token: str, decimals: int, quote: str, quote_decimals: int
    ) -> ConcentratedLiquiditySnapshot:
        slot0 = await self.client.call(pool, self.pool_abi, "slot0")
        liquidity = await self.client.call(pool, self.pool_abi, "liquidity")
        sqrt_price_x96, tick = slot0[0], slot0[1]
        token0, token1 = sort_tokens(token, quote)
        if token0 == token:
            decimals0, decimals1 = decimals, quote_decimals
        else:
            decimals0, decimals1 = quote_decimals, decimals
        return ConcentratedLiquiditySnapshot(
            token0=token0,
            token1=token1,
            sqrt_price_x96=sqrt_price_x96,
            tick=tick,
            decimals0=decimals0,
            decimals1=decimals1,
            liquidity=liquidity,
        )


@register_venue
class PancakeSwapV3Venue(UniswapV3Venue):
    """PancakeSwap V3 pools on BSC."""

    name = "pancakeswap_v3"
    chain = "bsc"
    factory = PANCAKE_V3_FACTORY
    fee_tiers = (100, 500, 2500, 10000)
    pool_abi = "PancakeV3Pool"
