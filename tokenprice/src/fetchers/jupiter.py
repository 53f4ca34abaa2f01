"""Jupiter price API fetcher (Solana).

Endpoint: https://api.jup.ag/price/v2?ids={mint}
Response: {"data": {"<mint>": {"id": "<mint>", "price": "1.23"}}}
"""

import logging

from .base import BaseFetcher, FetcherError, positive_price, register_fetcher

logger = logging.getLogger(__name__)

WSOL_MINT = "So11111111111111111111111111111111111111112"


@register_fetcher
class JupiterFetcher(BaseFetcher):
    """Fetcher for Jupiter's aggregated Solana token prices (USD)."""

    name = "jupiter"
    chains = frozenset({"solana"})
    BASE_URL = "https://api.jup.ag/price/v2"

    SYMBOL_MINTS = {"sol": WSOL_MINT}

    async def fetch(self, base: str, quote: str) -> float | None:
        """Fetch SOL/USD through the wrapped SOL mint."""
        mint = self.SYMBOL_MINTS.get(base.lower())
        if mint is None or quote.lower() != "usd":
            return None
        try:
            return await self.fetch_token("solana", mint)
        except FetcherError as e:
            logger.warning(f"[jupiter] Failed to fetch {base}/{quote}: {e}")
            return None

    async def fetch_token(self, chain: str, token: str) -> float | None:
        """Fetch a mint's USD price.

        :param chain: Must be "solana".
        :param token: Mint address.
        :returns: USD price, or None if the mint is not priced.
        :raises FetcherError: If the request failed.
        """
        if not self.supports_chain(chain):
            return None

        data = await self._get_json(self.BASE_URL, params={"ids": token})
        try:
            entry = data["data"][token]
        except (KeyError, TypeError):
            logger.debug(f"[jupiter] No price for {token}")
            return None

        if not isinstance(entry, dict):
            return None
        return positive_price(entry.get("price"))
