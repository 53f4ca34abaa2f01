"""TokenPriceService: Public entry point for token USD prices.

Wires chain clients, venue adapters, the reference-price cache, aggregator
fetchers and the pool store together, and exposes:

- :meth:`TokenPriceService.get_price_usd`: price (and market cap) of one token,
  reusing and refreshing the venue persisted for it.
- :meth:`TokenPriceService.find_and_persist_best_pool`: discovery only, e.g.
  when a token is first registered.
- :meth:`TokenPriceService.get_prices`: many tokens concurrently.

.. code-block:: python

    service = TokenPriceService.from_env(store=SqlitePoolInfoStore("pools.db"))
    try:
        price = await service.get_price_usd("bsc", "0x...", 18, token_id="42")
        print(price.price_usd, price.market_cap_formatted)
    finally:
        await service.close()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Any

from .ChainConfig import (
    BASE_UNISWAP_V3_WETH_USDC,
    BASE_USDC,
    BASE_WETH,
    BSC_BUSD,
    BSC_USDT,
    BSC_WBNB,
    CHAIN_AGGREGATORS,
    CHAIN_VENUES,
    ETHEREUM_UNISWAP_V3_WETH_USDC,
    ETHEREUM_USDC,
    ETHEREUM_WETH,
    PANCAKE_V2_WBNB_BUSD,
    PANCAKE_V2_WBNB_USDT,
    RAYDIUM_AMM_V4_SOL_USDC,
    REFERENCE_AGGREGATORS,
    SOLANA_USDC,
    SOLANA_WSOL,
    check_chain,
    get_quote_cache_ttl,
)
from .chains import EvmClient, SolanaClient
from .decoders import decode_ratio
from .errors import AllSourcesFailedError, PriceError
from .fetchers import BaseFetcher, get_fetcher
from .PoolDescriptor import (
    PoolDescriptor,
    Protocol,
    QuoteAssetClass,
    QuoteSource,
    TokenPrice,
)
from .PoolInfoStore import InMemoryPoolInfoStore, PoolInfoStore
from .PoolLocator import PoolLocator
from .PriceResolver import PriceResolver
from .QuoteCurrencyCache import QuoteCurrencyCache, ReferenceSource
from .SourceManager import SourceManager
from .venues import BaseVenue, get_venue_class

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceRequest:
    """One token to price in :meth:`TokenPriceService.get_prices`."""

    chain: str
    token: str
    decimals: int
    token_id: str | None = None


@dataclass(frozen=True)
class ReferenceVenue:
    """A fixed high-liquidity reference/stable pool.

    :ivar chain: Client chain to read through.
    :ivar variant: Venue adapter variant.
    :ivar pool: Pool address or account.
    :ivar asset: Reference asset address/mint in the pool.
    :ivar asset_decimals: Decimals of the reference asset.
    :ivar stable_symbol: Symbol of the stable side.
    :ivar stable: Stable asset address/mint.
    :ivar stable_decimals: Decimals of the stable side.
    :ivar protocol: Protocol family of the pool.
    :ivar fee_tier: Fee tier, for concentrated pools.
    """

    chain: str
    variant: str
    pool: str
    asset: str
    asset_decimals: int
    stable_symbol: str
    stable: str
    stable_decimals: int
    protocol: Protocol
    fee_tier: int | None = None

    def descriptor(self) -> PoolDescriptor:
        return PoolDescriptor(
            chain=self.chain,
            protocol=self.protocol,
            variant=self.variant,
            venue_identifier=self.pool,
            quote_asset_class=QuoteAssetClass.STABLE,
            pair_symbol=self.stable_symbol,
            pair_asset=self.stable,
            pair_decimals=self.stable_decimals,
            fee_tier=self.fee_tier,
        )


# On-chain reference venues per reference asset, in priority order
REFERENCE_VENUES: dict[str, list[ReferenceVenue]] = {
    "bnb": [
        ReferenceVenue(
            "bsc", "pancakeswap_v2", PANCAKE_V2_WBNB_USDT, BSC_WBNB, 18,
            "USDT", BSC_USDT, 18, Protocol.CONSTANT_PRODUCT,
        ),
        ReferenceVenue(
            "bsc", "pancakeswap_v2", PANCAKE_V2_WBNB_BUSD, BSC_WBNB, 18,
            "BUSD", BSC_BUSD, 18, Protocol.CONSTANT_PRODUCT,
        ),
    ],
    "eth": [
        ReferenceVenue(
            "base", "uniswap_v3", BASE_UNISWAP_V3_WETH_USDC, BASE_WETH, 18,
            "USDC", BASE_USDC, 6, Protocol.CONCENTRATED_LIQUIDITY, fee_tier=500,
        ),
        ReferenceVenue(
            "ethereum", "uniswap_v3", ETHEREUM_UNISWAP_V3_WETH_USDC, ETHEREUM_WETH, 18,
            "USDC", ETHEREUM_USDC, 6, Protocol.CONCENTRATED_LIQUIDITY, fee_tier=500,
        ),
    ],
    "sol": [
        ReferenceVenue(
            "solana", "raydium_amm_v4", RAYDIUM_AMM_V4_SOL_USDC, SOLANA_WSOL, 9,
            "USDC", SOLANA_USDC, 6, Protocol.FOREIGN_VAULT_BALANCE,
        ),
    ],
}


def build_clients(rpc_urls: dict[str, str] | None = None) -> dict[str, Any]:
    """Create one RPC client per chain (plus Ethereum mainnet for ETH/USD).

    :param rpc_urls: Chain -> RPC URL overrides (CLI); env/defaults otherwise.
    """
    rpc_urls = rpc_urls or {}
    clients: dict[str, Any] = {
        chain: EvmClient(chain, rpc_urls.get(chain)) for chain in ("bsc", "base", "ethereum")
    }
    clients["solana"] = SolanaClient(rpc_urls.get("solana"))
    return clients


def build_venues(clients: dict[str, Any]) -> dict[str, list[BaseVenue]]:
    """Instantiate each chain's venue adapters in preference order."""
    return {
        chain: [get_venue_class(name)(clients[chain]) for name in names]
        for chain, names in CHAIN_VENUES.items()
        if chain in clients
    }


def build_fetchers(
    names: set[str], api_keys: dict[str, str] | None = None
) -> dict[str, BaseFetcher]:
    """Instantiate fetchers by name, passing configured API keys."""
    api_keys = api_keys or {}
    return {name: get_fetcher(name, api_key=api_keys.get(name)) for name in sorted(names)}


def _venue_source(venue: BaseVenue, reference: ReferenceVenue) -> ReferenceSource:
    descriptor = reference.descriptor()

    async def fetch() -> float:
        snapshot = await venue.read_snapshot(descriptor, reference.asset, reference.asset_decimals)
        return float(decode_ratio(snapshot, reference.asset))

    name = f"{reference.chain}:{reference.variant}:{descriptor.pair_symbol}"
    return ReferenceSource(name, fetch, on_chain=True)


def _fetcher_source(fetcher: BaseFetcher, asset: str) -> ReferenceSource:
    async def fetch() -> float | None:
        return await fetcher.fetch(asset, "usd")

    return ReferenceSource(fetcher.name, fetch)


def build_reference_sources(
    clients: dict[str, Any], fetchers: dict[str, BaseFetcher]
) -> dict[str, list[ReferenceSource]]:
    """Ordered reference sources: on-chain venues first, then aggregators."""
    sources: dict[str, list[ReferenceSource]] = {}
    for asset, references in REFERENCE_VENUES.items():
        items = []
        for reference in references:
            if reference.chain not in clients:
                continue
            venue = get_venue_class(reference.variant)(clients[reference.chain])
            items.append(_venue_source(venue, reference))
        for name in REFERENCE_AGGREGATORS.get(asset, []):
            if name in fetchers:
                items.append(_fetcher_source(fetchers[name], asset))
        sources[asset] = items
    return sources


class TokenPriceService:
    """Facade over discovery, resolution and persistence.

    :ivar resolver: Stage-ordered price resolution.
    :ivar store: Persisted venue per token id.
    :ivar clients: Chain RPC clients (used for total supply).
    """

    def __init__(
        self,
        resolver: PriceResolver,
        store: PoolInfoStore | None = None,
        clients: dict[str, Any] | None = None,
    ) -> None:
        self.resolver = resolver
        self.store = store if store is not None else InMemoryPoolInfoStore()
        self.clients = clients or {}

    @classmethod
    def from_env(
        cls,
        store: PoolInfoStore | None = None,
        api_keys: dict[str, str] | None = None,
        rpc_urls: dict[str, str] | None = None,
        quote_cache_ttl: float | None = None,
    ) -> TokenPriceService:
        """Build a fully wired service from environment configuration.

        :param store: Pool store (in-memory when omitted).
        :param api_keys: Fetcher name -> API key.
        :param rpc_urls: Chain -> RPC URL overrides.
        :param quote_cache_ttl: Reference price TTL (``QUOTE_CACHE_TTL`` or 60 s).
        """
        clients = build_clients(rpc_urls)
        fetcher_names = {name for names in CHAIN_AGGREGATORS.values() for name in names}
        fetcher_names.update(name for names in REFERENCE_AGGREGATORS.values() for name in names)
        fetchers = build_fetchers(fetcher_names, api_keys)

        quote_cache = QuoteCurrencyCache(
            build_reference_sources(clients, fetchers),
            ttl=quote_cache_ttl if quote_cache_ttl is not None else get_quote_cache_ttl(),
        )
        aggregators = {
            chain: [fetchers[name] for name in names]
            for chain, names in CHAIN_AGGREGATORS.items()
        }
        resolver = PriceResolver(
            locator=PoolLocator(build_venues(clients)),
            quote_cache=quote_cache,
            aggregators=aggregators,
            source_manager=SourceManager(fetcher_names),
        )
        return cls(resolver, store=store, clients=clients)

    async def get_price_usd(
        self,
        chain: str,
        token: str,
        decimals: int,
        token_id: str | None = None,
    ) -> TokenPrice:
        """USD price and market cap of a token.

        :param chain: "bsc", "base" or "solana".
        :param token: Token address or mint.
        :param decimals: Token decimals.
        :param token_id: Key of the persisted venue; enables the cached-venue
            stage and persistence of freshly located venues.
        :returns: Price with optional market cap.
        :raises AllSourcesFailedError: If no stage produced a price.
        :raises ValueError: If the chain is not supported.
        """
        chain = check_chain(chain)
        cached = None
        if token_id is not None:
            cached = self.store.get_pool_descriptor(token_id)

        quote = await self.resolver.resolve_price_usd(chain, token, decimals, cached)

        if (
            token_id is not None
            and quote.source == QuoteSource.FRESH_VENUE
            and quote.descriptor is not None
            and self.store.save_pool_descriptor(token_id, quote.descriptor)
        ):
            logger.info(f"[service] Persisted {quote.descriptor} for token {token_id}")

        supply = await self.total_supply(chain, token, decimals)
        market_cap = quote.price_usd * supply if supply is not None else None
        return TokenPrice(price_usd=quote.price_usd, market_cap=market_cap, source=quote.source)

    async def find_and_persist_best_pool(
        self, token_id: str, chain: str, token: str, decimals: int | None
    ) -> PoolDescriptor | None:
        """Locate the deepest venue for a token and persist it.

        :returns: The saved descriptor, or None (logged) on any failure.
        """
        try:
            chain = check_chain(chain)
            descriptor = await self.resolver.locator.locate_pool(chain, token, decimals)
        except (PriceError, ValueError) as e:
            logger.warning(f"[service] No pool found for token {token_id} ({chain}:{token}): {e}")
            return None
        if not self.store.save_pool_descriptor(token_id, descriptor):
            return None
        logger.info(f"[service] Persisted {descriptor} for token {token_id}")
        return descriptor

    async def get_prices(self, requests: list[PriceRequest]) -> list[TokenPrice | None]:
        """Price many tokens concurrently.

        :returns: One result per request, in order; None where pricing failed.
        """
        return list(await asyncio.gather(*(self._price_or_none(r) for r in requests)))

    async def _price_or_none(self, request: PriceRequest) -> TokenPrice | None:
        try:
            return await self.get_price_usd(
                request.chain, request.token, request.decimals, request.token_id
            )
        except (AllSourcesFailedError, ValueError) as e:
            logger.warning(f"[service] {request.chain}:{request.token}: {e}")
            return None

    async def total_supply(self, chain: str, token: str, decimals: int) -> float | None:
        """Total supply in whole tokens, or None if it cannot be read."""
        client = self.clients.get(chain)
        if client is None:
            return None
        try:
            if isinstance(client, SolanaClient):
                supply = await client.get_token_supply(token)
            else:
                supply = Fraction(await client.total_supply(token), 10**decimals)
        except PriceError as e:
            logger.debug(f"[service] Total supply unavailable for {chain}:{token}: {e}")
            return None
        return float(supply)

    async def close(self) -> None:
        """Release HTTP clients and provider sessions."""
        for client in self.clients.values():
            if isinstance(client, EvmClient):
                await client.close()
        await BaseFetcher.close_shared_client()
