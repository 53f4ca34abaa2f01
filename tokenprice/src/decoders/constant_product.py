"""Constant-product (x*y=k) reserve decoder.

Used for Uniswap V2 style pairs (PancakeSwap V2 on BSC, V2 forks on Base).
Price of an asset is the other reserve divided by its own reserve, both
scaled to whole-token units first.

.. code-block:: python

    >>> snap = ReserveSnapshot("0xaaa", "0xbbb", 1_000_000 * 10**18, 10 * 10**18, 18, 18)
    >>> decode_reserves(snap, "0xaaa")
    Fraction(1, 100000)
"""

from dataclasses import dataclass
from fractions import Fraction

from ..errors import DecodeError, ZeroLiquidityError
from ..PoolDescriptor import Protocol
from .base import BaseDecoder, register_decoder, same_asset


@dataclass(frozen=True)
class ReserveSnapshot:
    """Raw reserves of a constant-product pair in storage order.

    :ivar asset_a: Asset stored first (token0).
    :ivar asset_b: Asset stored second (token1).
    :ivar reserve_a: Raw integer reserve of asset_a.
    :ivar reserve_b: Raw integer reserve of asset_b.
    :ivar decimals_a: Decimals of asset_a.
    :ivar decimals_b: Decimals of asset_b.
    """

    asset_a: str
    asset_b: str
    reserve_a: int
    reserve_b: int
    decimals_a: int
    decimals_b: int

    @property
    def normalized(self) -> tuple[Fraction, Fraction]:
        """Reserves in whole-token units, in storage order."""
        return (
            Fraction(self.reserve_a, 10**self.decimals_a),
            Fraction(self.reserve_b, 10**self.decimals_b),
        )


def decode_reserves(snapshot: ReserveSnapshot, target: str) -> Fraction:
    """Price of ``target`` in the pair's other asset.

    :param snapshot: Reserve snapshot.
    :param target: Asset being priced.
    :returns: pair_reserve / target_reserve in whole-token units.
    :raises DecodeError: If target is not in the pair.
    :raises ZeroLiquidityError: If either reserve is zero.
    """
    norm_a, norm_b = snapshot.normalized
    if same_asset(target, snapshot.asset_a):
        target_reserve, pair_reserve = norm_a, norm_b
    elif same_asset(target, snapshot.asset_b):
        target_reserve, pair_reserve = norm_b, norm_a
    else:
        raise DecodeError(
            f"Asset {target} is not part of pair {snapshot.asset_a}/{snapshot.asset_b}"
        )
    if target_reserve == 0 or pair_reserve == 0:
        raise ZeroLiquidityError(
            f"Zero reserve in pair {snapshot.asset_a}/{snapshot.asset_b}"
        )
    return pair_reserve / target_reserve


@register_decoder
class ConstantProductDecoder(BaseDecoder):
    """Decoder for constant-product reserve snapshots."""

    protocol = Protocol.CONSTANT_PRODUCT
    snapshot_type = ReserveSnapshot

    def decode(self, snapshot: ReserveSnapshot, target: str) -> Fraction:
        return decode_reserves(snapshot, target)

    def liquidity(self, snapshot: ReserveSnapshot) -> Fraction:
        norm_a, norm_b = snapshot.normalized
        return norm_a + norm_b
