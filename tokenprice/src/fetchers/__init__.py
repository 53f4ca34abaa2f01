"""
Price fetchers for third-party aggregator APIs.

This module provides a unified interface for fetching token prices from
aggregator APIs when on-chain discovery fails, and reference asset prices
(BNB, ETH, SOL) when on-chain reference venues fail.

Usage:
    from tokenprice.src.fetchers import get_fetcher, get_available_fetchers

    # Get list of available fetchers
    available = get_available_fetchers()
    # ['coinbase', 'coingecko', 'dexscreener', 'geckoterminal', 'jupiter', 'raydium']

    # Token price by address
    fetcher = get_fetcher("dexscreener")
    price = await fetcher.fetch_token("bsc", "0x...")

    # Reference asset by symbol
    fetcher = get_fetcher("coingecko", api_key="demo:CG-xxxxx")
    price = await fetcher.fetch("bnb", "usd")
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    get_available_fetchers,
    get_fetcher,
    positive_price,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .coinbase import CoinbaseFetcher
from .coingecko import CoinGeckoFetcher
from .dexscreener import DexScreenerFetcher
from .geckoterminal import GeckoTerminalFetcher
from .jupiter import JupiterFetcher
from .raydium import RaydiumFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "FetcherError",
    "FetcherConfigError",
    "FetcherHTTPError",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "positive_price",
    "FETCHER_REGISTRY",
    # Fetcher implementations
    "CoinbaseFetcher",
    "CoinGeckoFetcher",
    "DexScreenerFetcher",
    "GeckoTerminalFetcher",
    "JupiterFetcher",
    "RaydiumFetcher",
]
