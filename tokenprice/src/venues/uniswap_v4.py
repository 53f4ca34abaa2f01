"""Uniswap V4 venue on Base.

V4 pools live inside the singleton PoolManager and have no address. A pool
is identified by the keccak hash of its key (see
:func:`~tokenprice.src.decoders.compute_v4_pool_id`); the StateView lens
contract exposes ``getSlot0(poolId)`` and ``getLiquidity(poolId)``.

Only hookless pools with the standard fee/tick-spacing pairs are probed.
Native ETH (the zero address) is tried before WETH.
"""

import logging

from ..ChainConfig import ZERO_ADDRESS, QuoteAsset, get_v4_state_view
from ..decoders import ConcentratedLiquiditySnapshot, compute_v4_pool_id, sort_tokens
from ..errors import DecodeError
from ..PoolDescriptor import PoolDescriptor, Protocol, QuoteAssetClass
from .base import BaseVenue, VenueCandidate, register_venue

logger = logging.getLogger(__name__)

# (fee, tickSpacing) pairs used by the standard V4 pool configurations
V4_POOL_CONFIGS = ((100, 1), (500, 10), (3000, 60), (10000, 200))

NATIVE_ETH = QuoteAsset("ETH", ZERO_ADDRESS, 18, QuoteAssetClass.NATIVE)


def _pool_id_bytes(pool_id: str) -> bytes:
    return bytes.fromhex(pool_id.removeprefix("0x"))


@register_venue
class UniswapV4Venue(BaseVenue):
    """Uniswap V4 pools probed through StateView.

    :ivar state_view: StateView contract address.
    """

    name = "uniswap_v4"
    chain = "base"
    protocol = Protocol.CONCENTRATED_LIQUIDITY

    def __init__(self, client, quote_assets=None, state_view: str | None = None) -> None:
        super().__init__(client, quote_assets)
        if quote_assets is None:
            self.quote_assets.insert(0, NATIVE_ETH)
        self.state_view = state_view or get_v4_state_view()

    async def find_pools_for_quote(
        self, token: str, decimals: int, quote: QuoteAsset
    ) -> list[VenueCandidate]:
        candidates = []
        for fee, tick_spacing in V4_POOL_CONFIGS:
            pool_id = compute_v4_pool_id(token, quote.address, fee, tick_spacing)
            try:
                snapshot = await self._read_pool(
                    pool_id, token, decimals, quote.address, quote.decimals
                )
            except DecodeError:
                continue
            candidates.append(
                self.make_candidate(
                    pool_id, quote, snapshot, fee_tier=fee, tick_spacing=tick_spacing
                )
            )
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
        self, pool_id: str, token: str, decimals: int, quote: str, quote_decimals: int
    ) -> ConcentratedLiquiditySnapshot:
        pool_key = _pool_id_bytes(pool_id)
        slot0 = await self.client.call(self.state_view, "StateView", "getSlot0", pool_key)
        sqrt_price_x96, tick = slot0[0], slot0[1]
        if sqrt_price_x96 == 0:
            # StateView returns zeros for pools that were never initialized
            raise DecodeError(f"V4 pool {pool_id} is not initialized")
        liquidity = await self.client.call(
            self.state_view, "StateView", "getLiquidity", pool_key
        )
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
