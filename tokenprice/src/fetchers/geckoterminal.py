"""GeckoTerminal fetcher.

Endpoint: https://api.geckoterminal.com/api/v2/simple/networks/{network}/token_price/{token}
Rate Limit: 30 calls/min (no key required)
"""

import logging

from .base import BaseFetcher, FetcherHTTPError, positive_price, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class GeckoTerminalFetcher(BaseFetcher):
    """Fetcher for GeckoTerminal on-chain token prices."""

    name = "geckoterminal"
    chains = frozenset({"bsc", "base", "solana"})
    BASE_URL = "https://api.geckoterminal.com/api/v2"

    NETWORKS = {"bsc": "bsc", "base": "base", "solana": "solana"}

    async def fetch_token(self, chain: str, token: str) -> float | None:
        """Fetch a token's USD price.

        :param chain: Chain name.
        :param token: Contract address or mint.
        :returns: USD price, or None if the token is not listed.
        :raises FetcherError: If the request failed.
        """
        network = self.NETWORKS.get(chain.lower())
        if not network:
            return None

        url = f"{self.BASE_URL}/simple/networks/{network}/token_price/{token}"
        try:
            data = await self._get_json(url, headers={"accept": "application/json"})
        except FetcherHTTPError as e:
            # Unknown addresses are answered with 404
            if e.status_code == 404:
                logger.debug(f"[geckoterminal] Token {token} not found on {network}")
                return None
            raise

        try:
            prices = data["data"]["attributes"]["token_prices"]
        except (KeyError, TypeError) as e:
            logger.warning(f"[geckoterminal] Failed to parse response for {token}: {e}")
            return None

        if not isinstance(prices, dict):
            return None
        for address, price in prices.items():
            if address == token or address.lower() == token.lower():
                return positive_price(price)
        logger.debug(f"[geckoterminal] Token {token} not in response")
        return None
