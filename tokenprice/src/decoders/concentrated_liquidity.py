"""Concentrated-liquidity decoder (Uniswap V3/V4, PancakeSwap V3).

The pool stores ``sqrtPriceX96 = sqrt(token1_raw / token0_raw) * 2^96``. The
price of token0 in token1 in whole-token units is therefore::

    (sqrtPriceX96 / 2^96)^2 * 10^(decimals0 - decimals1)

and the price of token1 is its inverse. The squared ratio easily leaves float
range for extreme decimal differences, so everything here is exact
``Fraction`` math.

Uniswap V4 pools have no address; a pool is identified by
``keccak256(abi.encode(currency0, currency1, fee, tickSpacing, hooks))`` with
the currencies in canonical (ascending address) order. See
:func:`compute_v4_pool_id`.
"""

from dataclasses import dataclass
from fractions import Fraction
from math import isqrt

from eth_abi import encode
from web3 import Web3

from ..errors import DecodeError, ZeroLiquidityError
from ..PoolDescriptor import Protocol
from .base import BaseDecoder, register_decoder, same_asset

Q96 = 2**96

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MAX_UINT24 = 2**24 - 1
MIN_INT24 = -(2**23)
MAX_INT24 = 2**23 - 1


@dataclass(frozen=True)
class ConcentratedLiquiditySnapshot:
    """Slot0 state of a concentrated-liquidity pool.

    :ivar token0: Asset in the first (lower address) position.
    :ivar token1: Asset in the second position.
    :ivar sqrt_price_x96: Q64.96 square root of the raw token1/token0 price.
    :ivar tick: Current tick.
    :ivar decimals0: Decimals of token0.
    :ivar decimals1: Decimals of token1.
    :ivar liquidity: In-range liquidity (L), when read.
    """

    token0: str
    token1: str
    sqrt_price_x96: int
    tick: int
    decimals0: int
    decimals1: int
    liquidity: int = 0


def sqrt_price_x96_to_ratio(sqrt_price_x96: int, decimals0: int, decimals1: int) -> Fraction:
    """Price of token0 in token1, in whole-token units.

    :param sqrt_price_x96: Q64.96 fixed-point square-root price.
    :param decimals0: Decimals of token0.
    :param decimals1: Decimals of token1.
    :returns: Exact price.
    :raises ZeroLiquidityError: If the pool is uninitialized (sqrt price 0).

    .. code-block:: python

        >>> sqrt_price_x96_to_ratio(2**96, 18, 6)
        Fraction(1000000000000, 1)
    """
    if sqrt_price_x96 <= 0:
        raise ZeroLiquidityError("Pool is not initialized (sqrtPriceX96 = 0)")
    raw = Fraction(sqrt_price_x96 * sqrt_price_x96, Q96 * Q96)
    return raw * Fraction(10) ** (decimals0 - decimals1)


def ratio_to_sqrt_price_x96(ratio: Fraction, decimals0: int, decimals1: int) -> int:
    """Inverse of :func:`sqrt_price_x96_to_ratio`, rounded down.

    :param ratio: Price of token0 in token1, in whole-token units.
    :param decimals0: Decimals of token0.
    :param decimals1: Decimals of token1.
    :returns: Q64.96 fixed-point square-root price.
    """
    raw = Fraction(ratio) * Fraction(10) ** (decimals1 - decimals0)
    if raw <= 0:
        raise ValueError("ratio must be positive")
    # isqrt(num * 2^192 / den) keeps full precision in integers
    scaled = raw.numerator * Q96 * Q96 // raw.denominator
    return isqrt(scaled)


def virtual_reserves(snapshot: ConcentratedLiquiditySnapshot) -> tuple[Fraction, Fraction]:
    """In-range virtual reserves (x = L / sqrtP, y = L * sqrtP) in whole-token units.

    :param snapshot: Pool state with liquidity.
    :returns: (token0 reserve, token1 reserve).
    """
    if snapshot.sqrt_price_x96 <= 0 or snapshot.liquidity <= 0:
        return Fraction(0), Fraction(0)
    x = Fraction(snapshot.liquidity * Q96, snapshot.sqrt_price_x96)
    y = Fraction(snapshot.liquidity * snapshot.sqrt_price_x96, Q96)
    return x / 10**snapshot.decimals0, y / 10**snapshot.decimals1


def sort_tokens(token_a: str, token_b: str) -> tuple[str, str]:
    """Return the two addresses in canonical (ascending numeric) order."""
    if int(token_a, 16) <= int(token_b, 16):
        return token_a, token_b
    return token_b, token_a


def compute_v4_pool_id(
    token_a: str,
    token_b: str,
    fee: int,
    tick_spacing: int,
    hooks: str = ZERO_ADDRESS,
) -> str:
    """Compute a Uniswap V4 pool id from its pool key.

    Input order of the two tokens does not matter.

    :param token_a: One currency address (zero address for native ETH).
    :param token_b: The other currency address.
    :param fee: LP fee in hundredths of a bip (e.g., 3000 = 0.3%).
    :param tick_spacing: Tick spacing.
    :param hooks: Hooks contract address.
    :returns: 0x-prefixed 32-byte hex pool id.
    :raises ValueError: If fee or tick spacing is out of range.
    """
    if not 0 <= fee <= MAX_UINT24:
        raise ValueError(f"fee out of uint24 range: {fee}")
    if not MIN_INT24 <= tick_spacing <= MAX_INT24:
        raise ValueError(f"tick_spacing out of int24 range: {tick_spacing}")

    currency0, currency1 = sort_tokens(token_a, token_b)
    encoded = encode(
        ["address", "address", "uint24", "int24", "address"],
        [
            Web3.to_checksum_address(currency0),
            Web3.to_checksum_address(currency1),
            fee,
            tick_spacing,
            Web3.to_checksum_address(hooks),
        ],
    )
    return "0x" + Web3.keccak(encoded).hex().removeprefix("0x")


@register_decoder
class ConcentratedLiquidityDecoder(BaseDecoder):
    """Decoder for concentrated-liquidity slot0 snapshots."""

    protocol = Protocol.CONCENTRATED_LIQUIDITY
    snapshot_type = ConcentratedLiquiditySnapshot

    def decode(self, snapshot: ConcentratedLiquiditySnapshot, target: str) -> Fraction:
        price0 = sqrt_price_x96_to_ratio(
            snapshot.sqrt_price_x96, snapshot.decimals0, snapshot.decimals1
        )
        if same_asset(target, snapshot.token0):
            return price0
        if same_asset(target, snapshot.token1):
            return 1 / price0
        raise DecodeError(
            f"Asset {target} is not part of pool {snapshot.token0}/{snapshot.token1}"
        )

    def liquidity(self, snapshot: ConcentratedLiquiditySnapshot) -> Fraction:
        x, y = virtual_reserves(snapshot)
        return x + y
