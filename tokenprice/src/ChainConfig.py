"""ChainConfig: Per-chain constants and environment overrides.

Contract addresses, quote assets and source priorities are module-level
dicts keyed by chain name. Anything that varies per deployment (RPC URLs,
throttling, timeouts) can be overridden through environment variables:

- ``<CHAIN>_RPC_URL`` (``BSC_RPC_URL``, ``BASE_RPC_URL``, ``SOLANA_RPC_URL``,
  ``ETHEREUM_RPC_URL``)
- ``<CHAIN>_MAX_CONCURRENCY`` and ``<CHAIN>_MIN_REQUEST_INTERVAL``
- ``BASE_V4_STATE_VIEW``
- ``RPC_TIMEOUT``, ``QUOTE_CACHE_TTL``, ``POOL_DB_PATH``
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .PoolDescriptor import QuoteAssetClass

SUPPORTED_CHAINS = ("bsc", "base", "solana")

DEFAULT_RPC_URLS = {
    "bsc": "https://bsc-dataseed1.binance.org",
    "base": "https://mainnet.base.org",
    "solana": "https://api.mainnet-beta.solana.com",
    "ethereum": "https://eth.llamarpc.com",
}

# Max in-flight RPC calls per chain
DEFAULT_MAX_CONCURRENCY = {
    "bsc": 8,
    "base": 8,
    "solana": 4,
    "ethereum": 4,
}

# Minimum seconds between consecutive RPC calls (public Solana RPC rate-limits hard)
DEFAULT_MIN_REQUEST_INTERVAL = {
    "bsc": 0.0,
    "base": 0.0,
    "solana": 0.25,
    "ethereum": 0.0,
}

DEFAULT_RPC_TIMEOUT = 10.0
DEFAULT_QUOTE_CACHE_TTL = 60.0
# Per reference source attempt; a resolution tries each source in turn
DEFAULT_QUOTE_SOURCE_TIMEOUT = 10.0
# Venue reads and discovery only; aggregator attempts use the fetcher timeout
DEFAULT_STAGE_TIMEOUT = 30.0
DEFAULT_POOL_DB_PATH = "token_pools.db"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# --- BSC ---
BSC_WBNB = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
BSC_USDT = "0x55d398326f99059fF775485246999027B3197955"
BSC_USDC = "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d"
BSC_BUSD = "0xe9e7CEA3DedcA5984780Bafc599bD69ADd087D56"
PANCAKE_V2_FACTORY = "0xcA143Ce32Fe78f1f7019d7d551a6402fC5350c73"
PANCAKE_V3_FACTORY = "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865"
PANCAKE_V2_WBNB_USDT = "0x16b9a82891338f9bA80E2D6970FddA79D1eb0daE"
PANCAKE_V2_WBNB_BUSD = "0x58F876857a02D6762E0101bb5C46A8c1ED44Dc16"

# --- Base ---
BASE_WETH = "0x4200000000000000000000000000000000000006"
BASE_USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
BASE_UNISWAP_V3_FACTORY = "0x33128a8fC17869897dcE68Ed026d694621f6FDfD"
BASE_V2_FACTORY = "0x8909Dc15e40173Ff4699343b6eB8132c65e18eC6"  # BaseSwap
BASE_V4_STATE_VIEW = "0x86e8631a016f9068c3f085faf484ee3f5fdee8f2"
BASE_UNISWAP_V3_WETH_USDC = "0xd0b53D9277642d899DF5C87A3966A349A798F224"

# --- Ethereum mainnet (secondary source for ETH) ---
ETHEREUM_WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
ETHEREUM_USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
ETHEREUM_UNISWAP_V3_WETH_USDC = "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"

# --- Solana ---
SOLANA_WSOL = "So11111111111111111111111111111111111111112"
SOLANA_USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
RAYDIUM_AMM_V4_PROGRAM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
RAYDIUM_CPMM_PROGRAM = "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C"
RAYDIUM_AMM_V4_SOL_USDC = "58oQChx4yWmvKdwLLZzBi4ChoCc2fqCUWBkwMihLYQo2"


@dataclass(frozen=True)
class QuoteAsset:
    """An asset a token can be paired against on a venue.

    :ivar symbol: Display symbol (e.g., "WBNB").
    :ivar address: Contract address or mint.
    :ivar decimals: Token decimals.
    :ivar asset_class: Native (priced via the reference asset) or stable (taken as USD).
    """

    symbol: str
    address: str
    decimals: int
    asset_class: QuoteAssetClass


# Quote assets per chain, native first, then stables
CHAIN_QUOTE_ASSETS: dict[str, list[QuoteAsset]] = {
    "bsc": [
        QuoteAsset("WBNB", BSC_WBNB, 18, QuoteAssetClass.NATIVE),
        QuoteAsset("USDT", BSC_USDT, 18, QuoteAssetClass.STABLE),
        QuoteAsset("USDC", BSC_USDC, 18, QuoteAssetClass.STABLE),
    ],
    "base": [
        QuoteAsset("WETH", BASE_WETH, 18, QuoteAssetClass.NATIVE),
        QuoteAsset("USDC", BASE_USDC, 6, QuoteAssetClass.STABLE),
    ],
    "solana": [
        QuoteAsset("SOL", SOLANA_WSOL, 9, QuoteAssetClass.NATIVE),
        QuoteAsset("USDC", SOLANA_USDC, 6, QuoteAssetClass.STABLE),
    ],
}

# Reference asset (quote-currency cache key) for each chain's native quote
NATIVE_REFERENCE_ASSET = {
    "bsc": "bnb",
    "base": "eth",
    "solana": "sol",
    "ethereum": "eth",
}

WRAPPED_NATIVE = {
    "bsc": BSC_WBNB,
    "base": BASE_WETH,
    "solana": SOLANA_WSOL,
    "ethereum": ETHEREUM_WETH,
}

# Venue preference order per chain, newest protocol first
CHAIN_VENUES = {
    "bsc": ["pancakeswap_v3", "pancakeswap_v2"],
    "base": ["uniswap_v4", "uniswap_v3", "uniswap_v2"],
    "solana": ["raydium_cpmm", "raydium_amm_v4"],
}

# Aggregator priority for token prices (resolver stage 3)
CHAIN_AGGREGATORS = {
    "bsc": ["dexscreener", "geckoterminal", "coingecko"],
    "base": ["dexscreener", "geckoterminal", "coingecko"],
    "solana": ["jupiter", "dexscreener", "raydium", "geckoterminal"],
}

# Aggregator fallbacks for reference assets, after the on-chain sources
REFERENCE_AGGREGATORS = {
    "bnb": ["coingecko", "coinbase"],
    "eth": ["coingecko", "coinbase"],
    "sol": ["jupiter", "coingecko", "coinbase"],
}


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


def get_rpc_url(chain: str) -> str:
    """RPC endpoint for a chain (``<CHAIN>_RPC_URL`` overrides the default).

    :param chain: Chain name.
    :returns: RPC URL.
    :raises ValueError: If the chain is unknown and no override is set.
    """
    override = os.environ.get(f"{chain.upper()}_RPC_URL")
    if override:
        return override
    if chain not in DEFAULT_RPC_URLS:
        raise ValueError(f"Unknown chain '{chain}'. Available: {', '.join(DEFAULT_RPC_URLS)}")
    return DEFAULT_RPC_URLS[chain]


def get_max_concurrency(chain: str) -> int:
    value = os.environ.get(f"{chain.upper()}_MAX_CONCURRENCY")
    return int(value) if value else DEFAULT_MAX_CONCURRENCY.get(chain, 4)


def get_min_request_interval(chain: str) -> float:
    return _env_float(
        f"{chain.upper()}_MIN_REQUEST_INTERVAL", DEFAULT_MIN_REQUEST_INTERVAL.get(chain, 0.0)
    )


def get_rpc_timeout() -> float:
    return _env_float("RPC_TIMEOUT", DEFAULT_RPC_TIMEOUT)


def get_quote_cache_ttl() -> float:
    return _env_float("QUOTE_CACHE_TTL", DEFAULT_QUOTE_CACHE_TTL)


def get_v4_state_view() -> str:
    return os.environ.get("BASE_V4_STATE_VIEW") or BASE_V4_STATE_VIEW


def get_pool_db_path() -> str:
    return os.environ.get("POOL_DB_PATH") or DEFAULT_POOL_DB_PATH


def check_chain(chain: str) -> str:
    """Normalize and validate a chain name.

    :param chain: Chain name in any case.
    :returns: Lower-cased chain name.
    :raises ValueError: If the chain is not supported.
    """
    normalized = chain.strip().lower()
    if normalized not in SUPPORTED_CHAINS:
        raise ValueError(
            f"Unsupported chain '{chain}'. Available: {', '.join(SUPPORTED_CHAINS)}"
        )
    return normalized
