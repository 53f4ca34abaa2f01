"""ChainThrottle: Per-chain cap on in-flight RPC calls and request spacing.

Public RPC endpoints rate-limit aggressively (Solana's mainnet-beta endpoint
in particular). Every chain client call acquires a slot from its chain's
throttle:

.. code-block:: python

    throttle = ChainThrottle(max_concurrency=4, min_interval=0.25)
    async with throttle.slot():
        response = await client.post(url, json=payload)
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from .ChainConfig import get_max_concurrency, get_min_request_interval

logger = logging.getLogger(__name__)


class ChainThrottle:
    """Semaphore-bounded concurrency plus a minimum interval between call starts.

    :ivar max_concurrency: Maximum number of calls in flight.
    :ivar min_interval: Minimum seconds between two consecutive call starts.
    """

    def __init__(
        self,
        max_concurrency: int = 8,
        min_interval: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the throttle.

        :param max_concurrency: Maximum number of calls in flight (at least 1).
        :param min_interval: Minimum seconds between call starts (0 disables spacing).
        :param clock: Monotonic clock, injectable for tests.
        :param sleep: Async sleep, injectable for tests.
        :raises ValueError: If max_concurrency < 1 or min_interval < 0.
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        self.max_concurrency = max_concurrency
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._spacing_lock = asyncio.Lock()
        self._next_start = 0.0

    @classmethod
    def for_chain(cls, chain: str) -> ChainThrottle:
        """Build a throttle from the chain's configured limits."""
        return cls(
            max_concurrency=get_max_concurrency(chain),
            min_interval=get_min_request_interval(chain),
        )

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one concurrency slot, waiting out the request spacing first."""
        async with self._semaphore:
            if self.min_interval > 0:
                await self._wait_for_turn()
            yield

    async def _wait_for_turn(self) -> None:
        async with self._spacing_lock:
            now = self._clock()
            delay = self._next_start - now
            if delay > 0:
                logger.debug(f"[throttle] Delaying request by {delay:.3f}s")
                await self._sleep(delay)
                now += delay
            self._next_start = now + self.min_interval
