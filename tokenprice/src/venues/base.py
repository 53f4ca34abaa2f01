"""Base venue adapter interface and venue registry.

A venue adapter knows how to find a token's pools for one protocol variant
on one chain, and how to read a located pool's current state as a decoder
snapshot. Adapters do I/O only; pricing math lives in the decoders.

.. code-block:: python

    @register_venue
    class MyVenue(BaseVenue):
        name = "my_dex"
        chain = "base"
        protocol = Protocol.CONSTANT_PRODUCT

        async def find_pools_for_quote(self, token, decimals, quote) -> list[VenueCandidate]:
            ...

        async def read_snapshot(self, descriptor, token, decimals):
            ...
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, ClassVar

from ..ChainConfig import CHAIN_QUOTE_ASSETS, ZERO_ADDRESS, QuoteAsset
from ..decoders import snapshot_liquidity
from ..PoolDescriptor import PoolDescriptor, Protocol

logger = logging.getLogger(__name__)


def is_zero_address(address: str | None) -> bool:
    """Whether a registry returned "no pool" (empty or the zero address)."""
    return not address or address.lower() == ZERO_ADDRESS


@dataclass
class VenueCandidate:
    """A discovered pool with the state read during discovery.

    :ivar descriptor: Venue identity.
    :ivar snapshot: Decoder snapshot read at discovery time.
    :ivar liquidity: Decimal-normalized liquidity measure.
    """

    descriptor: PoolDescriptor
    snapshot: Any
    liquidity: Fraction


class BaseVenue(ABC):
    """Abstract base class for venue adapters.

    :cvar name: Variant identifier stored in descriptors (e.g., "uniswap_v3").
    :cvar chain: Default chain of the venue.
    :cvar protocol: Protocol family of the venue's pools.
    :ivar client: Chain RPC client.
    :ivar quote_assets: Quote assets to pair against, native first.
    """

    name: ClassVar[str] = ""
    chain: ClassVar[str] = ""
    protocol: ClassVar[Protocol]

    def __init__(
        self,
        client: Any,
        quote_assets: list[QuoteAsset] | None = None,
    ) -> None:
        """Initialize the adapter.

        :param client: EvmClient or SolanaClient for the venue's chain.
        :param quote_assets: Override of the chain's quote asset list.
        """
        self.client = client
        self.quote_assets = list(
            quote_assets if quote_assets is not None else CHAIN_QUOTE_ASSETS.get(self.chain, [])
        )

    async def token_decimals(self, token: str) -> int:
        """Decimals of a token, read through the chain client."""
        return await self.client.decimals(token)

    async def find_candidates(self, token: str, decimals: int) -> list[VenueCandidate]:
        """Find the token's pools on this venue.

        Quote assets are tried in order; the first quote asset with at least
        one pool wins and its pools are returned.

        :param token: Token address or mint.
        :param decimals: Token decimals.
        :returns: Candidates (possibly empty).
        :raises RpcError: If the chain cannot be read.
        """
        for quote in self.quote_assets:
            candidates = await self.find_pools_for_quote(token, decimals, quote)
            if candidates:
                logger.debug(
                    f"[{self.name}] {len(candidates)} pool(s) for {token} vs {quote.symbol}"
                )
                return candidates
        return []

    @abstractmethod
    async def find_pools_for_quote(
        self, token: str, decimals: int, quote: QuoteAsset
    ) -> list[VenueCandidate]:
        """Find pools pairing ``token`` with one quote asset.

        :param token: Token address or mint.
        :param decimals: Token decimals.
        :param quote: Quote asset.
        :returns: Candidates for this quote asset.
        """
        pass

    @abstractmethod
    async def read_snapshot(self, descriptor: PoolDescriptor, token: str, decimals: int) -> Any:
        """Read the current state of a located pool.

        :param descriptor: Descriptor created by this venue.
        :param token: Token being priced.
        :param decimals: Token decimals.
        :returns: Decoder snapshot.
        :raises RpcError: If the chain cannot be read.
        :raises DecodeError: If the pool state is unusable.
        """
        pass

    def make_candidate(
        self,
        venue_identifier: str,
        quote: QuoteAsset,
        snapshot: Any,
        fee_tier: int | None = None,
        tick_spacing: int | None = None,
    ) -> VenueCandidate:
        """Wrap a snapshot read during discovery into a candidate."""
        liquidity = snapshot_liquidity(snapshot)
        descriptor = PoolDescriptor(
            chain=self.client_chain,
            protocol=self.protocol,
            variant=self.name,
            venue_identifier=venue_identifier,
            quote_asset_class=quote.asset_class,
            pair_symbol=quote.symbol,
            pair_asset=quote.address,
            pair_decimals=quote.decimals,
            fee_tier=fee_tier,
            tick_spacing=tick_spacing,
            liquidity=float(liquidity),
        )
        return VenueCandidate(descriptor=descriptor, snapshot=snapshot, liquidity=liquidity)

    @property
    def client_chain(self) -> str:
        """Chain the adapter actually reads (the client's, when it declares one)."""
        return getattr(self.client, "chain", None) or self.chain


# Registry of venue adapters by variant name (populated by subclass imports)
VENUE_REGISTRY: dict[str, type[BaseVenue]] = {}


def register_venue(cls: type[BaseVenue]) -> type[BaseVenue]:
    """Decorator to register a venue adapter class.

    :param cls: Venue class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If the venue has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Venue {cls.__name__} must define a 'name' class variable")
    VENUE_REGISTRY[cls.name] = cls
    return cls


def get_venue_class(name: str) -> type[BaseVenue]:
    """Look up a venue adapter class by variant name.

    :raises ValueError: If the variant is unknown.
    """
    if name not in VENUE_REGISTRY:
        available = ", ".join(sorted(VENUE_REGISTRY))
        raise ValueError(f"Unknown venue '{name}'. Available: {available}")
    return VENUE_REGISTRY[name]
