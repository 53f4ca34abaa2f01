"""CoinGecko fetcher.

Endpoints:
    https://api.coingecko.com/api/v3/simple/price?ids={id}&vs_currencies={quote}
    https://api.coingecko.com/api/v3/simple/token_price/{platform}?contract_addresses={token}&vs_currencies=usd
Rate Limit: 30 calls/min (free), higher with API key
"""

import logging

from .base import BaseFetcher, FetcherConfigError, FetcherError, positive_price, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinGeckoFetcher(BaseFetcher):
    """Fetcher for CoinGecko API.

    Prices reference assets by symbol and tokens by contract address.

    API tiers:
        - Free: api.coingecko.com (no key, 30 calls/min)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    To use a demo key, prefix with "demo:": API_KEY_COINGECKO=demo:CG-xxxxx
    Pro keys need no prefix: API_KEY_COINGECKO=xxxxx
    """

    name = "coingecko"
    chains = frozenset({"bsc", "base", "solana"})
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"

    # Map reference symbols to CoinGecko IDs
    COIN_IDS = {
        "bnb": "binancecoin",
        "eth": "ethereum",
        "sol": "solana",
        "usdt": "tether",
        "usdc": "usd-coin",
    }

    # Asset platform ids for contract-address lookups
    PLATFORMS = {
        "bsc": "binance-smart-chain",
        "base": "base",
        "solana": "solana",
    }

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize with optional demo: prefix handling.

        :raises FetcherConfigError: If the key is a bare "demo:" prefix.
        """
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]  # Strip "demo:" prefix
            if not api_key:
                raise FetcherConfigError("[coingecko] Demo API key is empty")
        super().__init__(api_key=api_key, timeout=timeout)

    @property
    def base_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        if not self.has_api_key:
            return self.BASE_URL_FREE
        return self.BASE_URL_FREE if self._is_demo else self.BASE_URL_PRO

    @property
    def headers(self) -> dict | None:
        """API key header, if a key is configured."""
        if not self.api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return {header_name: self.api_key}

    async def fetch(self, base: str, quote: str) -> float | None:
        """Fetch a reference asset price from CoinGecko.

        :param base: Base currency (e.g., "bnb", "eth", "sol").
        :param quote: Quote currency (e.g., "usd").
        :returns: Current price or None on failure.
        """
        coin_id = self.COIN_IDS.get(base.lower())
        if not coin_id:
            logger.warning(f"[coingecko] Unknown coin: {base}")
            return None

        quote_lower = quote.lower()
        try:
            data = await self._get_json(
                f"{self.base_url}/simple/price",
                params={"ids": coin_id, "vs_currencies": quote_lower},
                headers=self.headers,
            )
            return positive_price(data[coin_id][quote_lower])
        except FetcherError as e:
            logger.warning(f"[coingecko] Failed to fetch {base}/{quote}: {e}")
            return None
        except (KeyError, TypeError) as e:
            logger.warning(f"[coingecko] No {quote_lower} price for {coin_id}: {e}")
            return None

    async def fetch_token(self, chain: str, token: str) -> float | None:
        """Fetch a token's USD price by contract address.

        :param chain: Chain name.
        :param token: Contract address or mint.
        :returns: USD price, or None if the token is not listed.
        :raises FetcherError: If the request failed.
        """
        platform = self.PLATFORMS.get(chain.lower())
        if not platform:
            return None

        data = await self._get_json(
            f"{self.base_url}/simple/token_price/{platform}",
            params={"contract_addresses": token, "vs_currencies": "usd"},
            headers=self.headers,
        )
        if not isinstance(data, dict):
            logger.warning(f"[coingecko] Unexpected response for {token}: {type(data).__name__}")
            return None
        # EVM addresses come back lower-cased; Solana mints unchanged
        entry = data.get(token) or data.get(token.lower())
        if not isinstance(entry, dict):
            logger.debug(f"[coingecko] Token {token} not listed on {platform}")
            return None
        return positive_price(entry.get("usd"))
