"""
Cross-chain DEX token price discovery.

This module prices arbitrary tokens on BSC, Base and Solana in USD:
- decoders: Protocol state decoders (constant-product, concentrated, vault balances)
- venues: Per-protocol pool discovery and state reads
- PoolLocator: Deepest-venue selection across protocols and fee tiers
- QuoteCurrencyCache: 60 s cache of BNB/ETH/SOL reference prices
- PriceResolver: Ordered fallback from venues to aggregator APIs
- TokenPriceService: Public facade with pool persistence
- fetchers: Aggregator API fetchers
"""

from .errors import (
    AllSourcesFailedError,
    DecodeError,
    NotFoundError,
    PriceError,
    RpcError,
    RpcTimeoutError,
    ZeroLiquidityError,
)
from .PoolDescriptor import (
    PoolDescriptor,
    PriceQuote,
    Protocol,
    QuoteAssetClass,
    QuoteSource,
    TokenPrice,
)
from .PoolInfoStore import InMemoryPoolInfoStore, PoolInfoStore, SqlitePoolInfoStore
from .PoolLocator import PoolLocator
from .PriceResolver import PriceResolver
from .QuoteCurrencyCache import QuoteCurrencyCache, QuoteCurrencyCacheEntry, ReferenceSource
from .SourceManager import SourceManager, SourceStatus
from .TokenPriceService import PriceRequest, TokenPriceService

__all__ = [
    "AllSourcesFailedError",
    "DecodeError",
    "InMemoryPoolInfoStore",
    "NotFoundError",
    "PoolDescriptor",
    "PoolInfoStore",
    "PoolLocator",
    "PriceError",
    "PriceQuote",
    "PriceRequest",
    "PriceResolver",
    "Protocol",
    "QuoteAssetClass",
    "QuoteCurrencyCache",
    "QuoteCurrencyCacheEntry",
    "QuoteSource",
    "ReferenceSource",
    "RpcError",
    "RpcTimeoutError",
    "SourceManager",
    "SourceStatus",
    "SqlitePoolInfoStore",
    "TokenPrice",
    "TokenPriceService",
    "ZeroLiquidityError",
]
