#!/usr/bin/env python3
"""Token Price Discovery.

Resolves the USD spot price of a token on BSC, Base or Solana from its
deepest DEX venue, falling back to aggregator APIs, and optionally persists
the chosen venue so later lookups skip discovery.

Configure through env vars (see README.md); CLI arguments take precedence.
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from .src.ChainConfig import NATIVE_REFERENCE_ASSET, SUPPORTED_CHAINS, get_pool_db_path
from .src.errors import AllSourcesFailedError
from .src.fetchers import get_available_fetchers
from .src.PoolInfoStore import InMemoryPoolInfoStore, SqlitePoolInfoStore
from .src.QuoteCurrencyCache import QuoteCurrencyCache
from .src.TokenPriceService import TokenPriceService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: coingecko=demo:CG-abc123

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            source, key = item.split("=", 1)
            api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys() -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for: API_KEY_COINGECKO, API_KEY_DEXSCREENER, etc.

    :returns: Dict mapping source names to API keys.
    """
    api_keys = {}
    prefixes = ["API_KEY_", "APIKEY_"]

    for key, value in os.environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                source = key[len(prefix):].lower()
                api_keys[source] = value
                break

    return api_keys


def reference_summary(quote_cache: QuoteCurrencyCache, chain: str) -> dict | None:
    """Describe the cached reference price for a chain's native asset.

    Reads the cache without resolving, so it only reports a price that the
    lookup itself already fetched.

    :param quote_cache: Cache used by the resolver.
    :param chain: Chain name.
    :returns: Asset, USD price and source, or None if nothing is cached.
    """
    asset = NATIVE_REFERENCE_ASSET.get(chain)
    entry = quote_cache.peek(asset) if asset else None
    if entry is None:
        return None
    return {"asset": entry.asset, "price_usd": entry.price_usd, "source": entry.source}
    return api_keys


async def run(args: argparse.Namespace, api_keys: dict[str, str]) -> int:
    """Resolve (and optionally register) one token, printing JSON to stdout.

    :returns: Process exit code.
    """
    if args.db == ":memory:":
        store = InMemoryPoolInfoStore()
    else:
        store = SqlitePoolInfoStore(args.db)

    rpc_urls = {args.chain: args.rpc_url} if args.rpc_url else None
    service = TokenPriceService.from_env(store=store, api_keys=api_keys, rpc_urls=rpc_urls)
    try:
        output: dict = {"chain": args.chain, "token": args.token}

        if args.register:
            if not args.token_id:
                logger.error("--register requires --token-id")
                return 2
            descriptor = await service.find_and_persist_best_pool(
                args.token_id, args.chain, args.token, args.decimals
            )
            output["pool"] = descriptor.to_dict() if descriptor else None

        decimals = args.decimals
        if decimals is None:
            decimals = await service.resolver.locator.token_decimals(args.chain, args.token)

        price = await service.get_price_usd(args.chain, args.token, decimals, args.token_id)
        output.update(
            {
                "price_usd": price.price_usd,
                "source": price.source.value,
                "market_cap": price.market_cap,
                "market_cap_formatted": price.market_cap_formatted,
            }
        )
        reference = reference_summary(service.resolver.quote_cache, args.chain)
        if reference is not None:
            output["reference"] = reference
        if args.token_id:
            stored = store.get_pool_descriptor(args.token_id)
            output["pool"] = stored.to_dict() if stored else None

        print(json.dumps(output, indent=2))
        return 0
    except AllSourcesFailedError as e:
        logger.error(str(e))
        for stage, reason in e.failures:
            logger.error(f"  {stage}: {reason}")
        return 1
    finally:
        await service.close()
        if isinstance(store, SqlitePoolInfoStore):
            store.close()


def main() -> None:
    """Main entry point for the token price CLI."""
    available_sources = get_available_fetchers()

    parser = argparse.ArgumentParser(
        description="Token Price Discovery: USD spot prices from on-chain DEX venues",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Aggregator sources (fallback):
  {', '.join(available_sources)}

Examples:
  # Price a BSC token
  python -m tokenprice.main --chain bsc --token 0x... --decimals 18

  # Discover and persist the best pool, then price through it
  python -m tokenprice.main --chain base --token 0x... --decimals 18 \\
      --token-id 42 --db pools.db --register

  # Solana mint (decimals read from chain)
  python -m tokenprice.main --chain solana --token <mint>

Environment variables (CLI args take precedence):
  BSC_RPC_URL, BASE_RPC_URL, SOLANA_RPC_URL, ETHEREUM_RPC_URL,
  BASE_V4_STATE_VIEW, <CHAIN>_MAX_CONCURRENCY, <CHAIN>_MIN_REQUEST_INTERVAL,
  RPC_TIMEOUT, QUOTE_CACHE_TTL, POOL_DB_PATH, API_KEY_COINGECKO, etc.
""",
    )

    parser.add_argument(
        "--chain",
        type=str.lower,
        choices=SUPPORTED_CHAINS,
        help="Chain the token lives on",
        default=os.environ.get("CHAIN"),
    )

    parser.add_argument(
        "--token",
        type=str,
        help="Token contract address (EVM) or mint (Solana)",
        default=os.environ.get("TOKEN"),
    )

    parser.add_argument(
        "--decimals",
        type=int,
        help="Token decimals (read from chain if omitted)",
        default=None,
    )

    parser.add_argument(
        "--token-id",
        dest="token_id",
        type=str,
        help="Key under which the chosen pool is persisted",
        default=None,
    )

    parser.add_argument(
        "--db",
        type=str,
        help="SQLite pool store path, or :memory: (default: POOL_DB_PATH or token_pools.db)",
        default=get_pool_db_path(),
    )

    parser.add_argument(
        "--register",
        action="store_true",
        help="Run pool discovery and persist the result under --token-id first",
    )

    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        type=str,
        help="RPC URL for --chain (overrides <CHAIN>_RPC_URL)",
        default=None,
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., coingecko=demo:CG-xxx)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not args.chain:
        parser.error("--chain is required")
    if not args.token:
        parser.error("--token is required")
    if args.decimals is not None and not 0 <= args.decimals <= 255:
        parser.error("--decimals must be between 0 and 255")

    # Parse API keys (CLI + environment)
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))

    logger.debug(f"Chain: {args.chain}, token: {args.token}, store: {args.db}")
    if api_keys:
        logger.debug(f"API Keys: {', '.join(api_keys.keys())}")

    try:
        exit_code = asyncio.run(run(args, api_keys))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        exit_code = 130
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
