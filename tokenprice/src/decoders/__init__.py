"""
Protocol decoders for AMM pool state.

Each decoder turns one protocol's raw state into the price of a target asset
in the venue's other asset.

Usage:
    from tokenprice.src.decoders import decode_ratio, ReserveSnapshot

    snapshot = ReserveSnapshot(token, wbnb, reserve0, reserve1, 18, 18)
    price_in_wbnb = decode_ratio(snapshot, token)
"""

# Import base classes and utilities
from .base import (
    DECODER_REGISTRY,
    BaseDecoder,
    decode_ratio,
    get_decoder,
    register_decoder,
    same_asset,
    snapshot_liquidity,
)

# Import all decoder implementations to trigger registration
from .concentrated_liquidity import (
    Q96,
    ZERO_ADDRESS,
    ConcentratedLiquidityDecoder,
    ConcentratedLiquiditySnapshot,
    compute_v4_pool_id,
    ratio_to_sqrt_price_x96,
    sort_tokens,
    sqrt_price_x96_to_ratio,
    virtual_reserves,
)
from .constant_product import ConstantProductDecoder, ReserveSnapshot, decode_reserves
from .vault_balance import (
    AMM_V4_SPAN,
    CPMM_DISCRIMINATOR,
    CPMM_SPAN,
    VaultBalanceDecoder,
    VaultBalanceSnapshot,
    VaultLayout,
    decode_vault_balances,
    parse_amm_v4_state,
    parse_cpmm_state,
)

__all__ = [
    # Base classes
    "BaseDecoder",
    # Registry functions
    "register_decoder",
    "get_decoder",
    "decode_ratio",
    "snapshot_liquidity",
    "same_asset",
    "DECODER_REGISTRY",
    # Constant product
    "ConstantProductDecoder",
    "ReserveSnapshot",
    "decode_reserves",
    # Concentrated liquidity
    "ConcentratedLiquidityDecoder",
    "ConcentratedLiquiditySnapshot",
    "Q96",
    "ZERO_ADDRESS",
    "compute_v4_pool_id",
    "ratio_to_sqrt_price_x96",
    "sort_tokens",
    "sqrt_price_x96_to_ratio",
    "virtual_reserves",
    # Vault balance
    "VaultBalanceDecoder",
    "VaultBalanceSnapshot",
    "VaultLayout",
    "AMM_V4_SPAN",
    "CPMM_SPAN",
    "CPMM_DISCRIMINATOR",
    "decode_vault_balances",
    "parse_amm_v4_state",
    "parse_cpmm_state",
]
