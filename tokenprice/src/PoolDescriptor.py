"""PoolDescriptor: Identity of a trading venue and the price records built on it.

A descriptor carries everything needed to re-read a venue's state without
running discovery again. Descriptors compare and hash on
``(chain, protocol, venue_identifier)``, which is unique per venue.

.. code-block:: python

    >>> desc = PoolDescriptor(
    ...     chain="bsc",
    ...     protocol=Protocol.CONSTANT_PRODUCT,
    ...     variant="pancakeswap_v2",
    ...     venue_identifier="0x16b9a82891338f9bA80E2D6970FddA79D1eb0daE",
    ...     quote_asset_class=QuoteAssetClass.STABLE,
    ...     pair_symbol="USDT",
    ...     pair_asset="0x55d398326f99059fF775485246999027B3197955",
    ...     pair_decimals=18,
    ... )
    >>> PoolDescriptor.from_dict(desc.to_dict()) == desc
    True
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Protocol(str, Enum):
    """AMM protocol family of a venue."""

    CONSTANT_PRODUCT = "constant-product"
    CONCENTRATED_LIQUIDITY = "concentrated-liquidity"
    FOREIGN_VAULT_BALANCE = "foreign-vault-balance"


class QuoteAssetClass(str, Enum):
    """Whether a venue prices the token against the chain's native asset or a stable."""

    NATIVE = "native"
    STABLE = "stable"


class QuoteSource(str, Enum):
    """Provenance of a resolved price."""

    CACHED_VENUE = "cached-venue"
    FRESH_VENUE = "fresh-venue"
    AGGREGATOR_API = "aggregator-api"


@dataclass(eq=False)
class PoolDescriptor:
    """A located trading venue.

    :ivar chain: Chain name ("bsc", "base", "solana").
    :ivar protocol: Protocol family.
    :ivar variant: Concrete venue implementation (e.g., "uniswap_v4").
    :ivar venue_identifier: Pool/pair address, V4 pool id or Solana account.
    :ivar quote_asset_class: Native or stable quote asset.
    :ivar pair_symbol: Symbol of the quote asset (e.g., "WETH", "USDC").
    :ivar pair_asset: Address/mint of the quote asset.
    :ivar pair_decimals: Decimals of the quote asset.
    :ivar fee_tier: Fee tier in hundredths of a bip (concentrated venues).
    :ivar tick_spacing: Tick spacing (Uniswap V4 venues).
    :ivar liquidity: Liquidity measured at discovery time (informational).
    """

    chain: str
    protocol: Protocol
    variant: str
    venue_identifier: str
    quote_asset_class: QuoteAssetClass
    pair_symbol: str
    pair_asset: str
    pair_decimals: int
    fee_tier: int | None = None
    tick_spacing: int | None = None
    liquidity: float | None = None

    def __post_init__(self) -> None:
        self.chain = self.chain.lower()
        self.protocol = Protocol(self.protocol)
        self.quote_asset_class = QuoteAssetClass(self.quote_asset_class)

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity of the venue: (chain, protocol, venue identifier)."""
        venue = self.venue_identifier
        if self.chain != "solana":
            # EVM addresses and pool ids are case-insensitive hex
            venue = venue.lower()
        return (self.chain, self.protocol.value, venue)

    def __hash__(self) -> int:
        return hash(self.key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PoolDescriptor):
            return NotImplemented
        return self.key == other.key

    def __str__(self) -> str:
        fee = f" fee={self.fee_tier}" if self.fee_tier is not None else ""
        return f"{self.chain}/{self.variant}/{self.pair_symbol}{fee} {self.venue_identifier}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict (JSON-compatible)."""
        return {
            "chain": self.chain,
            "protocol": self.protocol.value,
            "variant": self.variant,
            "venue_identifier": self.venue_identifier,
            "quote_asset_class": self.quote_asset_class.value,
            "pair_symbol": self.pair_symbol,
            "pair_asset": self.pair_asset,
            "pair_decimals": self.pair_decimals,
            "fee_tier": self.fee_tier,
            "tick_spacing": self.tick_spacing,
            "liquidity": self.liquidity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PoolDescriptor:
        """Build a descriptor from :meth:`to_dict` output.

        :raises ValueError: If a required field is missing or an enum value is unknown.
        """
        try:
            return cls(
                chain=data["chain"],
                protocol=Protocol(data["protocol"]),
                variant=data["variant"],
                venue_identifier=data["venue_identifier"],
                quote_asset_class=QuoteAssetClass(data["quote_asset_class"]),
                pair_symbol=data["pair_symbol"],
                pair_asset=data["pair_asset"],
                pair_decimals=int(data["pair_decimals"]),
                fee_tier=data.get("fee_tier"),
                tick_spacing=data.get("tick_spacing"),
                liquidity=data.get("liquidity"),
            )
        except KeyError as e:
            raise ValueError(f"Missing pool descriptor field: {e}") from e


@dataclass
class PriceQuote:
    """A strictly positive USD price with its provenance.

    :ivar price_usd: USD price of one whole token.
    :ivar source: Which stage produced the price.
    :ivar observed_at: Unix timestamp of the observation.
    :ivar detail: Free-form provenance (venue or aggregator name).
    :ivar descriptor: Venue used, when the price came from a venue.
    """

    price_usd: float
    source: QuoteSource
    observed_at: float = field(default_factory=time.time)
    detail: str = ""
    descriptor: PoolDescriptor | None = None

    def __post_init__(self) -> None:
        if not self.price_usd > 0:
            raise ValueError(f"PriceQuote requires a positive price, got {self.price_usd}")


@dataclass
class TokenPrice:
    """Public price result.

    :ivar price_usd: USD price of one whole token.
    :ivar market_cap: price_usd * total supply, when the supply could be read.
    :ivar source: Provenance of the price.
    """

    price_usd: float
    market_cap: float | None
    source: QuoteSource

    @property
    def market_cap_formatted(self) -> str | None:
        """Market cap as "$1.23M", "$4.56K" or "$7.89"."""
        if self.market_cap is None:
            return None
        if self.market_cap >= 1_000_000:
            return f"${self.market_cap / 1_000_000:.2f}M"
        if self.market_cap >= 1_000:
            return f"${self.market_cap / 1_000:.2f}K"
        return f"${self.market_cap:.2f}"
