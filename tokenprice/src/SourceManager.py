"""SourceManager: Aggregator health tracking with exponential backoff.

When an aggregator fails (returns no price, raises, or times out), it enters
a backoff period that doubles with each consecutive failure, up to a maximum
(default 5 minutes). A successful fetch resets the counter. The resolver asks
for the active subset of its fixed priority list, so order among healthy
sources never changes.

.. code-block:: python

    >>> manager = SourceManager(["dexscreener", "geckoterminal", "coingecko"])
    >>> manager.record_failure("dexscreener")
    5.0
    >>> manager.record_failure("dexscreener")
    10.0
    >>> manager.filter_active(["dexscreener", "geckoterminal", "coingecko"])
    ['geckoterminal', 'coingecko']
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass
class SourceStatus:
    """Health of a single source.

    :ivar consecutive_failures: Failures since the last success.
    :ivar backoff_until: Clock value when the backoff period ends.
    :ivar total_failures: Failures since tracking began.
    :ivar total_successes: Successes since tracking began.
    :ivar last_error: Reason given for the most recent failure.
    """

    consecutive_failures: int = 0
    backoff_until: float = 0.0
    total_failures: int = 0
    total_successes: int = 0
    last_error: str = ""


class SourceManager:
    """Tracks per-source failures and applies exponential backoff.

    Backoff after the n-th consecutive failure is
    ``min(base_backoff_seconds * 2**(n-1), max_backoff_seconds)``.

    :ivar base_backoff_seconds: Backoff after the first failure.
    :ivar max_backoff_seconds: Upper bound on backoff.
    :ivar clock: Returns the current time in seconds.
    """

    DEFAULT_BASE_BACKOFF_SECONDS = 5
    DEFAULT_MAX_BACKOFF_SECONDS = 300  # 5 minutes

    def __init__(
        self,
        sources: Iterable[str] = (),
        base_backoff_seconds: float = DEFAULT_BASE_BACKOFF_SECONDS,
        max_backoff_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the source manager.

        :param sources: Source names known up front (others are added on first use).
        :param base_backoff_seconds: Backoff after the first failure.
        :param max_backoff_seconds: Upper bound on backoff.
        :param clock: Time source, defaults to ``time.time``.
        """
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.clock = clock or time.time
        self._status: dict[str, SourceStatus] = {s: SourceStatus() for s in sources}

    def _get(self, source: str) -> SourceStatus:
        if source not in self._status:
            self._status[source] = SourceStatus()
        return self._status[source]

    def record_failure(self, source: str, reason: str = "") -> float:
        """Record a failure and start (or extend) the source's backoff.

        :param source: Source that failed.
        :param reason: Short failure description, kept for status output.
        :returns: Backoff duration in seconds.
        """
        status = self._get(source)
        status.consecutive_failures += 1
        status.total_failures += 1
        status.last_error = reason

        backoff_seconds = min(
            self.base_backoff_seconds * (2 ** (status.consecutive_failures - 1)),
            self.max_backoff_seconds,
        )
        status.backoff_until = self.clock() + backoff_seconds
        logger.debug(
            f"[{source}] Failure #{status.consecutive_failures}, "
            f"backing off {backoff_seconds:.0f}s"
        )
        return float(backoff_seconds)

    def record_success(self, source: str) -> None:
        """Record a success, clearing any backoff.

        :param source: Source that succeeded.
        """
        status = self._get(source)
        status.consecutive_failures = 0
        status.backoff_until = 0.0
        status.total_successes += 1

    def is_source_active(self, source: str) -> bool:
        """Whether a source may be queried now. Unknown sources are active."""
        status = self._status.get(source)
        return status is None or self.clock() >= status.backoff_until

    def filter_active(self, ordered_sources: Iterable[str]) -> list[str]:
        """Drop sources in backoff, preserving the given order.

        :param ordered_sources: Sources in priority order.
        :returns: Active sources in the same order.
        """
        return [s for s in ordered_sources if self.is_source_active(s)]

    def get_backoff_remaining(self, source: str) -> float:
        """Seconds of backoff left for a source (0 when active or unknown)."""
        status = self._status.get(source)
        if status is None:
            return 0.0
        return max(0.0, status.backoff_until - self.clock())

    def get_source_status(self, source: str) -> SourceStatus | None:
        """Status of a source, or None if it was never seen."""
        return self._status.get(source)

    def get_all_status(self) -> dict[str, SourceStatus]:
        """Copy of the status map."""
        return dict(self._status)

    def reset_all(self) -> None:
        """Forget all failures."""
        self._status = {s: SourceStatus() for s in self._status}
