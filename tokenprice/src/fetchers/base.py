"""Base fetcher interface and shared HTTP client management.

Aggregator fetchers are the last resolution stage: they return a USD (or
native-asset) price for a token straight from a third-party API. A shared
httpx.AsyncClient is used across all fetchers (and the Solana RPC client)
to avoid connection overhead.

Two lookups are supported:

- ``fetch(base, quote)``: symbol pair, used for reference assets (bnb/usd).
- ``fetch_token(chain, token)``: contract address or mint on a chain.

``fetch`` returns ``None`` on any failure. ``fetch_token`` separates the two
kinds of miss: it returns ``None`` when the API answered but has no price for
the token, and raises :class:`FetcherError` when the API itself failed
(transport error, non-2xx status, invalid JSON). Only the latter counts
against the source's health.

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myfetcher"
        chains = frozenset({"bsc", "base"})

        async def fetch_token(self, chain: str, token: str) -> float | None:
            data = await self._get_json(f"https://api.example.com/{chain}/{token}")
            return positive_price(data.get("price"))
"""

import logging
from typing import Any, ClassVar

import httpx

logger = logging.getLogger(__name__)


class FetcherError(Exception):
    """Base exception for fetcher errors."""

    pass


class FetcherConfigError(FetcherError):
    """Raised when fetcher configuration is invalid (e.g., malformed API key)."""

    pass


class FetcherHTTPError(FetcherError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


def positive_price(value: Any) -> float | None:
    """Coerce an API price field to a positive float.

    :param value: Number or numeric string from a JSON body.
    :returns: The price, or None if missing, non-numeric or not positive.

    .. code-block:: python

        >>> positive_price("0.0061")
        0.0061
        >>> positive_price("0") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not price > 0 or price == float("inf"):
        return None
    return price


class BaseFetcher:
    """Base class for price fetchers.

    Subclasses set ``name`` and implement at least one of ``fetch`` (symbol
    pairs) or ``fetch_token`` (token addresses on ``chains``).

    :cvar name: Unique identifier for this fetcher.
    :cvar chains: Chains ``fetch_token`` supports.
    :cvar quote: Unit of ``fetch_token`` prices: "usd" or "native" (the chain's
        reference asset, converted by the resolver).
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    # Fetcher identification
    name: ClassVar[str] = ""
    chains: ClassVar[frozenset[str]] = frozenset()
    quote: ClassVar[str] = "usd"

    # Default timeout for HTTP requests (seconds)
    DEFAULT_TIMEOUT = 10.0

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize the fetcher.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: 10).
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @property
    def has_api_key(self) -> bool:
        """Check if this fetcher has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client lives on BaseFetcher itself so every subclass (and the
        Solana RPC client) reuses the same connection pool.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseFetcher._shared_client is None or BaseFetcher._shared_client.is_closed:
            BaseFetcher._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
        return BaseFetcher._shared_client

    @classmethod
    def set_shared_client(cls, client: httpx.AsyncClient | None) -> None:
        """Replace the shared HTTP client (e.g., with a MockTransport client in tests)."""
        BaseFetcher._shared_client = client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        if BaseFetcher._shared_client is not None and not BaseFetcher._shared_client.is_closed:
            await BaseFetcher._shared_client.aclose()
        BaseFetcher._shared_client = None

    def supports_chain(self, chain: str) -> bool:
        """Whether ``fetch_token`` can price tokens on a chain."""
        return chain.lower() in self.chains

    async def fetch(self, base: str, quote: str) -> float | None:
        """Fetch the current price for a symbol pair.

        :param base: Base currency symbol (e.g., "bnb", "eth", "sol").
        :param quote: Quote currency symbol (e.g., "usd").
        :returns: Current price as float, or None if unsupported or failed.
        """
        return None

    async def fetch_token(self, chain: str, token: str) -> float | None:
        """Fetch the current price of a token by address or mint.

        :param chain: Chain name ("bsc", "base", "solana").
        :param token: Contract address or mint.
        :returns: Price in ``quote`` units, or None if the token is not listed.
        :raises FetcherError: If the request itself failed.
        """
        return None

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e
        if not response.is_success:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise FetcherHTTPError(response.status_code, response.text[:200])
        return response

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        """GET and decode a JSON body.

        :raises FetcherError: On transport errors, non-2xx status or invalid JSON.
        """
        response = await self._get(url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise FetcherError(f"Invalid JSON from {url}: {e}") from e


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.

    .. code-block:: python

        @register_fetcher
        class DexScreenerFetcher(BaseFetcher):
            name = "dexscreener"
            ...
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(name: str, api_key: str | None = None) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (e.g., "dexscreener", "jupiter").
    :param api_key: Optional API key.
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](api_key=api_key)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
