"""Short-lived USD price cache for reference assets (BNB, ETH, SOL).

Venue prices quoted in a chain's native asset are converted to USD with the
reference asset's price. Reference prices are resolved through an ordered
list of sources and kept for ``ttl`` seconds (60 by default). Concurrent
callers asking for the same expired asset share one in-flight resolution.

There is no stale fallback: when every source fails the cache raises
:class:`AllSourcesFailedError` and keeps no entry.

.. code-block:: python

    cache = QuoteCurrencyCache({
        "bnb": [
            ReferenceSource("pancakeswap_v2:WBNB/USDT", fetch_wbnb_usdt, on_chain=True),
            ReferenceSource("coingecko", lambda: coingecko.fetch("bnb", "usd")),
        ],
    })
    bnb_usd = await cache.get_price_usd("bnb")
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from .ChainConfig import DEFAULT_QUOTE_CACHE_TTL, DEFAULT_QUOTE_SOURCE_TIMEOUT
from .errors import AllSourcesFailedError, PriceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceSource:
    """One way of pricing a reference asset.

    :ivar name: Source label recorded in cache entries and failures.
    :ivar fetch: Coroutine factory returning a USD price (or None on failure).
    :ivar on_chain: Whether the price is read from a DEX venue rather than an API.
    """

    name: str
    fetch: Callable[[], Awaitable[float | None]]
    on_chain: bool = False


@dataclass(frozen=True)
class QuoteCurrencyCacheEntry:
    """A cached reference price.

    :ivar asset: Reference asset symbol (lower case).
    :ivar price_usd: USD price.
    :ivar observed_at: Cache clock value at resolution.
    :ivar source: Name of the source that produced the price.
    :ivar on_chain: Whether that source was an on-chain venue.
    """

    asset: str
    price_usd: float
    observed_at: float
    source: str
    on_chain: bool = False


class QuoteCurrencyCache:
    """TTL cache of reference asset USD prices with request coalescing.

    :ivar sources: Ordered sources per asset.
    :ivar ttl: Seconds an entry stays fresh.
    :ivar source_timeout: Upper bound on a single source attempt, in seconds.
    """

    def __init__(
        self,
        sources: dict[str, list[ReferenceSource]],
        ttl: float = DEFAULT_QUOTE_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        source_timeout: float = DEFAULT_QUOTE_SOURCE_TIMEOUT,
    ) -> None:
        """Initialize the cache.

        :param sources: Asset symbol -> sources in priority order.
        :param ttl: Entry lifetime in seconds.
        :param clock: Monotonic clock, injectable for tests.
        :param source_timeout: Timeout per source attempt.
        """
        self.sources = {asset.lower(): list(items) for asset, items in sources.items()}
        self.ttl = ttl
        self.source_timeout = source_timeout
        self._clock = clock
        self._entries: dict[str, QuoteCurrencyCacheEntry] = {}
        self._inflight: dict[str, asyncio.Future] = {}

    def peek(self, asset: str) -> QuoteCurrencyCacheEntry | None:
        """Current entry for an asset, fresh or not, without resolving."""
        return self._entries.get(asset.lower())

    def is_fresh(self, entry: QuoteCurrencyCacheEntry | None) -> bool:
        return entry is not None and self._clock() - entry.observed_at < self.ttl

    def set(
        self, asset: str, price_usd: float, source: str = "manual", on_chain: bool = False
    ) -> QuoteCurrencyCacheEntry:
        """Seed an entry directly.

        :raises ValueError: If the price is not positive.
        """
        if not price_usd > 0:
            raise ValueError(f"Reference price must be positive, got {price_usd}")
        entry = QuoteCurrencyCacheEntry(
            asset.lower(), float(price_usd), self._clock(), source, on_chain
        )
        self._entries[entry.asset] = entry
        return entry

    async def get_price_usd(self, asset: str) -> float:
        """USD price of a reference asset, resolving on miss or expiry.

        :param asset: Reference asset symbol ("bnb", "eth", "sol").
        :returns: Strictly positive USD price.
        :raises AllSourcesFailedError: If every source fails.
        """
        return (await self.get_entry(asset)).price_usd

    async def get_entry(self, asset: str) -> QuoteCurrencyCacheEntry:
        """Like :meth:`get_price_usd` but returns the whole entry."""
        key = asset.lower()
        entry = self._entries.get(key)
        if self.is_fresh(entry):
            return entry

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._resolve(key))
            self._inflight[key] = task
            task.add_done_callback(lambda _done, key=key: self._inflight.pop(key, None))
        # One caller being cancelled must not cancel the shared resolution
        return await asyncio.shield(task)

    async def _resolve(self, asset: str) -> QuoteCurrencyCacheEntry:
        failures: list[tuple[str, str]] = []
        for source in self.sources.get(asset, []):
            try:
                price = await asyncio.wait_for(source.fetch(), timeout=self.source_timeout)
            except asyncio.TimeoutError:
                failures.append((source.name, f"timed out after {self.source_timeout}s"))
                logger.warning(f"[{source.name}] {asset.upper()}/USD timed out")
                continue
            except PriceError as e:
                failures.append((source.name, str(e)))
                logger.warning(f"[{source.name}] {asset.upper()}/USD failed: {e}")
                continue
            except Exception as e:
                failures.append((source.name, f"{type(e).__name__}: {e}"))
                logger.warning(f"[{source.name}] {asset.upper()}/USD unexpected error: {e}")
                continue

            if price is None or not price > 0:
                failures.append((source.name, "no price"))
                logger.warning(f"[{source.name}] {asset.upper()}/USD returned no price")
                continue

            entry = self.set(asset, price, source.name, source.on_chain)
            logger.info(f"[{source.name}] {asset.upper()}/USD = {price:.4f}")
            return entry

        if not failures:
            failures.append(("config", "no sources configured"))
        raise AllSourcesFailedError(f"{asset.upper()}/USD", failures)
