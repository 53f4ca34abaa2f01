"""
Venue adapters: per-protocol pool discovery and state reads.

Usage:
    from tokenprice.src.venues import get_venue_class

    venue = get_venue_class("pancakeswap_v2")(evm_client)
    candidates = await venue.find_candidates(token, decimals=18)
"""

# Import base classes and utilities
from .base import (
    VENUE_REGISTRY,
    BaseVenue,
    VenueCandidate,
    get_venue_class,
    is_zero_address,
    register_venue,
)

# Import all venue implementations to trigger registration
from .raydium import RaydiumAmmV4Venue, RaydiumCpmmVenue, RaydiumVenue
from .uniswap_v2 import PancakeSwapV2Venue, UniswapV2Venue
from .uniswap_v3 import PancakeSwapV3Venue, UniswapV3Venue
from .uniswap_v4 import NATIVE_ETH, V4_POOL_CONFIGS, UniswapV4Venue

__all__ = [
    # Base classes
    "BaseVenue",
    "VenueCandidate",
    # Registry functions
    "register_venue",
    "get_venue_class",
    "is_zero_address",
    "VENUE_REGISTRY",
    # Venue implementations
    "PancakeSwapV2Venue",
    "PancakeSwapV3Venue",
    "RaydiumAmmV4Venue",
    "RaydiumCpmmVenue",
    "RaydiumVenue",
    "UniswapV2Venue",
    "UniswapV3Venue",
    "UniswapV4Venue",
    "NATIVE_ETH",
    "V4_POOL_CONFIGS",
]
