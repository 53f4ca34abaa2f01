"""Coinbase Exchange fetcher.

Endpoint: https://api.exchange.coinbase.com/products/{BASE}-{QUOTE}/ticker
Rate Limit: High (no key required)
Used for reference assets only (BNB, ETH, SOL); it has no token lookup.
"""

import logging

from .base import BaseFetcher, FetcherError, positive_price, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinbaseFetcher(BaseFetcher):
    """Fetcher for Coinbase Exchange API.

    No API key required for public ticker endpoint.
    """

    name = "coinbase"
    BASE_URL = "https://api.exchange.coinbase.com"

    async def fetch(self, base: str, quote: str) -> float | None:
        """Fetch price from Coinbase Exchange.

        :param base: Base currency (e.g., "eth", "sol").
        :param quote: Quote currency (e.g., "usd").
        :returns: Current price or None on failure.
        """
        symbol = f"{base.upper()}-{quote.upper()}"
        url = f"{self.BASE_URL}/products/{symbol}/ticker"

        try:
            data = await self._get_json(url)
            if not isinstance(data, dict) or "price" not in data:
                logger.warning(f"[coinbase] No price in response for {symbol}: {data}")
                return None
            return positive_price(data["price"])

        except FetcherError as e:
            logger.warning(f"[coinbase] Failed to fetch {symbol}: {e}")
            return None
