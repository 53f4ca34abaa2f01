"""DexScreener fetcher.

Endpoint: https://api.dexscreener.com/latest/dex/tokens/{token}
Rate Limit: 300 requests/min (no key required)
Response: {"pairs": [{"chainId", "baseToken": {"address"}, "priceUsd", "liquidity": {"usd"}}]}
"""

import logging

from .base import BaseFetcher, positive_price, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class DexScreenerFetcher(BaseFetcher):
    """Fetcher for DexScreener token pairs.

    Picks the highest-liquidity pair on the requested chain where the token
    is the base token (``priceUsd`` is always the base token's price).
    """

    name = "dexscreener"
    chains = frozenset({"bsc", "base", "solana"})
    BASE_URL = "https://api.dexscreener.com/latest/dex/tokens"

    CHAIN_IDS = {"bsc": "bsc", "base": "base", "solana": "solana"}

    async def fetch_token(self, chain: str, token: str) -> float | None:
        """Fetch a token's USD price.

        :param chain: Chain name.
        :param token: Contract address or mint.
        :returns: USD price of the most liquid pair, or None if unlisted.
        :raises FetcherError: If the request failed.
        """
        chain_id = self.CHAIN_IDS.get(chain.lower())
        if not chain_id:
            return None

        data = await self._get_json(f"{self.BASE_URL}/{token}")
        pairs = data.get("pairs") if isinstance(data, dict) else None
        if not pairs:
            logger.debug(f"[dexscreener] No pairs for {token}")
            return None

        best_price: float | None = None
        best_liquidity = -1.0
        for pair in pairs:
            if not isinstance(pair, dict) or pair.get("chainId") != chain_id:
                continue
            base_address = (pair.get("baseToken") or {}).get("address", "")
            if base_address.lower() != token.lower():
                continue
            price = positive_price(pair.get("priceUsd"))
            if price is None:
                continue
            liquidity = positive_price((pair.get("liquidity") or {}).get("usd")) or 0.0
            if liquidity > best_liquidity:
                best_price, best_liquidity = price, liquidity

        if best_price is None:
            logger.debug(f"[dexscreener] No priced {chain_id} pair with {token} as base")
        return best_price
