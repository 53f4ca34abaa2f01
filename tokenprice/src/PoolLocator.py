"""PoolLocator: Find the deepest trading venue for a token on one chain.

Venue adapters are consulted in the chain's fixed preference order (newest
protocol first). Every adapter reports its candidates with a decimal-normalized
liquidity measure; the single greatest wins, ties going to the earlier
adapter. Zero-liquidity candidates never win, even alone. An adapter that
fails (RPC error or timeout) is logged and skipped.

.. code-block:: python

    locator = PoolLocator({"bsc": [PancakeSwapV3Venue(bsc), PancakeSwapV2Venue(bsc)]})
    descriptor = await locator.locate_pool("bsc", "0x...", decimals=18)
"""

from __future__ import annotations

import logging

from .errors import NotFoundError, PriceError
from .PoolDescriptor import PoolDescriptor
from .venues import BaseVenue, VenueCandidate

logger = logging.getLogger(__name__)


class PoolLocator:
    """Selects the best venue across a chain's venue adapters.

    :ivar venues: Venue adapters per chain, in preference order.
    """

    def __init__(self, venues: dict[str, list[BaseVenue]]) -> None:
        """Initialize the locator.

        :param venues: Chain name -> adapters in preference order.
        """
        self.venues = {chain.lower(): list(adapters) for chain, adapters in venues.items()}

    def get_venue(self, chain: str, variant: str) -> BaseVenue:
        """Adapter for a descriptor's variant.

        :raises NotFoundError: If the chain has no adapter of that variant.
        """
        for venue in self.venues.get(chain.lower(), []):
            if venue.name == variant:
                return venue
        raise NotFoundError(f"No {variant} venue configured on {chain}")

    async def token_decimals(self, chain: str, token: str) -> int:
        """Read a token's decimals through the chain's first adapter."""
        adapters = self.venues.get(chain.lower())
        if not adapters:
            raise NotFoundError(f"No venues configured on {chain}")
        return await adapters[0].token_decimals(token)

    async def find_candidates(
        self, chain: str, token: str, decimals: int
    ) -> list[VenueCandidate]:
        """All candidates from every adapter, in preference order.

        Adapter failures are logged and skipped.
        """
        candidates: list[VenueCandidate] = []
        for venue in self.venues.get(chain.lower(), []):
            try:
                found = await venue.find_candidates(token, decimals)
            except PriceError as e:
                logger.warning(f"[{venue.name}] Discovery failed for {token}: {e}")
                continue
            except Exception as e:
                logger.warning(
                    f"[{venue.name}] Unexpected discovery error for {token}: "
                    f"{type(e).__name__}: {e}"
                )
                continue
            for candidate in found:
                logger.debug(
                    f"[{venue.name}] Candidate {candidate.descriptor} "
                    f"liquidity={float(candidate.liquidity):.6g}"
                )
            candidates.extend(found)
        return candidates

    async def locate_candidate(
        self, chain: str, token: str, decimals: int | None = None
    ) -> VenueCandidate:
        """Best candidate with the state read during discovery.

        :param chain: Chain name.
        :param token: Token address or mint.
        :param decimals: Token decimals (read from chain when None).
        :returns: The deepest candidate.
        :raises NotFoundError: If no venue with positive liquidity exists.
        :raises RpcError: If decimals must be read and the read fails.
        """
        if decimals is None:
            decimals = await self.token_decimals(chain, token)

        best: VenueCandidate | None = None
        for candidate in await self.find_candidates(chain, token, decimals):
            if candidate.liquidity <= 0:
                continue
            # Strict comparison keeps the earlier (preferred) candidate on ties
            if best is None or candidate.liquidity > best.liquidity:
                best = candidate

        if best is None:
            raise NotFoundError(f"No liquid venue found for {token} on {chain}")
        logger.info(f"[locator] Selected {best.descriptor} for {token}")
        return best

    async def locate_pool(
        self, chain: str, token: str, decimals: int | None = None
    ) -> PoolDescriptor:
        """Descriptor of the deepest venue for a token.

        :raises NotFoundError: If no venue with positive liquidity exists.
        """
        return (await self.locate_candidate(chain, token, decimals)).descriptor
