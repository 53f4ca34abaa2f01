"""Raydium API fetcher (Solana).

Endpoint: https://api-v3.raydium.io/pools/info/mint?mint1={mint}&mint2={WSOL}
Prices are in SOL, taken from the reserves of the highest-TVL token/SOL pool;
the resolver converts them with the cached SOL/USD price.
"""

import logging

from .base import BaseFetcher, FetcherError, positive_price, register_fetcher
from .jupiter import WSOL_MINT

logger = logging.getLogger(__name__)


def _mint_address(value) -> str:
    if isinstance(value, dict):
        return value.get("address", "")
    return value or ""


@register_fetcher
class RaydiumFetcher(BaseFetcher):
    """Fetcher for Raydium's pool API, quoting tokens in SOL."""

    name = "raydium"
    chains = frozenset({"solana"})
    quote = "native"
    BASE_URL = "https://api-v3.raydium.io"

    async def fetch_token(self, chain: str, token: str) -> float | None:
        """Fetch a mint's price in SOL.

        :param chain: Must be "solana".
        :param token: Mint address.
        :returns: Price in SOL, or None if there is no token/SOL pool.
        :raises FetcherError: If the request failed or the API reported failure.
        """
        if not self.supports_chain(chain):
            return None

        params = {
            "mint1": token,
            "mint2": WSOL_MINT,
            "poolType": "all",
            "poolSortField": "liquidity",
            "sortType": "desc",
            "pageSize": 10,
            "page": 1,
        }
        data = await self._get_json(f"{self.BASE_URL}/pools/info/mint", params=params)
        if not isinstance(data, dict) or not data.get("success"):
            raise FetcherError(f"[raydium] API returned failure for {token}")
        pools = data.get("data")
        if isinstance(pools, dict):
            pools = pools.get("data")
        if not pools:
            logger.debug(f"[raydium] No token/SOL pools for {token}")
            return None

        best = max(pools, key=lambda pool: positive_price(pool.get("tvl")) or 0.0)
        mint_a = _mint_address(best.get("mintA"))
        mint_b = _mint_address(best.get("mintB"))
        amount_a = positive_price(best.get("mintAmountA"))
        amount_b = positive_price(best.get("mintAmountB"))
        if amount_a is None or amount_b is None:
            logger.debug(f"[raydium] Empty reserves in pool {best.get('id')}")
            return None

        if mint_a == token and mint_b == WSOL_MINT:
            return amount_b / amount_a
        if mint_b == token and mint_a == WSOL_MINT:
            return amount_a / amount_b
        logger.debug(f"[raydium] Pool {best.get('id')} is not a {token}/SOL pool")
        return None
