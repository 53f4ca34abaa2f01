"""PriceResolver: Ordered fallback from on-chain venues to aggregator APIs.

Resolution stages, strictly in sequence:

0. Native shortcut: the chain's wrapped native asset is priced straight from
   the quote-currency cache, tagged fresh-venue or aggregator-api after the
   reference source that produced it.
1. Cached venue: re-read the descriptor persisted for the token.
2. Fresh discovery: locate the deepest venue and decode it.
3. Aggregators: the chain's fetchers in fixed priority order, skipping those
   in backoff. The first positive price wins.

Venue I/O in stages 1 and 2 is bounded by ``stage_timeout``. Each aggregator
attempt is bounded by its fetcher's ``timeout``, and reference prices by the
quote cache's per-source timeout. An aggregator goes into backoff only
when its request fails or times out; a well-formed "not listed" answer is a
miss for that token alone.

Every recoverable error (not found, decode, zero liquidity, RPC, timeout)
advances to the next stage. Only :class:`AllSourcesFailedError`, listing the
failure of each stage, leaves :meth:`PriceResolver.resolve_price_usd`.
"""

from __future__ import annotations

import asyncio
import logging
from fractions import Fraction
from typing import Awaitable, Callable

from .ChainConfig import DEFAULT_STAGE_TIMEOUT, NATIVE_REFERENCE_ASSET, WRAPPED_NATIVE
from .decoders import decode_ratio, same_asset
from .errors import AllSourcesFailedError, DecodeError, PriceError
from .fetchers import BaseFetcher, FetcherError
from .PoolDescriptor import PoolDescriptor, PriceQuote, QuoteAssetClass, QuoteSource
from .PoolLocator import PoolLocator
from .QuoteCurrencyCache import QuoteCurrencyCache
from .SourceManager import SourceManager

logger = logging.getLogger(__name__)


class StageFailed(Exception):
    """A stage produced no price (internal to the resolver)."""

    pass


class PriceResolver:
    """Resolves a token's USD price through the fallback stages.

    :ivar locator: Venue discovery.
    :ivar quote_cache: Reference asset prices.
    :ivar aggregators: Fetchers per chain, in priority order.
    :ivar source_manager: Aggregator backoff tracking.
    :ivar stage_timeout: Upper bound on venue reads and discovery, in seconds.
    """

    def __init__(
        self,
        locator: PoolLocator,
        quote_cache: QuoteCurrencyCache,
        aggregators: dict[str, list[BaseFetcher]] | None = None,
        source_manager: SourceManager | None = None,
        stage_timeout: float = DEFAULT_STAGE_TIMEOUT,
    ) -> None:
        self.locator = locator
        self.quote_cache = quote_cache
        self.aggregators = {chain.lower(): list(f) for chain, f in (aggregators or {}).items()}
        self.source_manager = source_manager or SourceManager(
            {f.name for fetchers in self.aggregators.values() for f in fetchers}
        )
        self.stage_timeout = stage_timeout

    async def resolve_price_usd(
        self,
        chain: str,
        token: str,
        decimals: int,
        cached_descriptor: PoolDescriptor | None = None,
    ) -> PriceQuote:
        """Resolve the USD price of one whole token.

        :param chain: Chain name.
        :param token: Token address or mint.
        :param decimals: Token decimals.
        :param cached_descriptor: Venue persisted for this token, if any.
        :returns: Positive quote. A freshly located venue is attached as
            ``quote.descriptor`` with ``source == FRESH_VENUE``.
        :raises AllSourcesFailedError: If every stage fails.
        """
        chain = chain.lower()
        failures: list[tuple[str, str]] = []

        stages: list[tuple[str, Callable[[], Awaitable[PriceQuote]]]] = []
        if self._is_wrapped_native(chain, token):
            stages.append(("native", lambda: self._native_stage(chain)))
        if cached_descriptor is not None:
            stages.append(
                ("cached-venue", lambda: self._cached_stage(chain, token, decimals, cached_descriptor))
            )
        stages.append(("fresh-venue", lambda: self._fresh_stage(chain, token, decimals)))
        stages.append(("aggregator-api", lambda: self._aggregator_stage(chain, token)))

        for stage, run in stages:
            try:
                quote = await run()
            except asyncio.TimeoutError:
                reason = f"timed out after {self.stage_timeout}s"
            except (PriceError, StageFailed, ValueError) as e:
                reason = str(e) or type(e).__name__
            except Exception as e:
                logger.warning(f"[resolver] Unexpected error in {stage} stage: {e!r}")
                reason = f"{type(e).__name__}: {e}"
            else:
                logger.debug(f"[resolver] {chain}:{token} = ${quote.price_usd:.10g} ({stage})")
                return quote
            logger.warning(f"[resolver] {stage} stage failed for {chain}:{token}: {reason}")
            failures.append((stage, reason))

        raise AllSourcesFailedError(f"{chain}:{token}", failures)

    def _is_wrapped_native(self, chain: str, token: str) -> bool:
        wrapped = WRAPPED_NATIVE.get(chain)
        return wrapped is not None and same_asset(token, wrapped)

    async def _native_stage(self, chain: str) -> PriceQuote:
        asset = NATIVE_REFERENCE_ASSET[chain]
        entry = await self.quote_cache.get_entry(asset)
        source = QuoteSource.FRESH_VENUE if entry.on_chain else QuoteSource.AGGREGATOR_API
        return PriceQuote(
            price_usd=entry.price_usd,
            source=source,
            detail=f"{asset}:{entry.source}",
        )

    async def _cached_stage(
        self, chain: str, token: str, decimals: int, descriptor: PoolDescriptor
    ) -> PriceQuote:
        if descriptor.chain != chain:
            raise DecodeError(f"Cached venue is on {descriptor.chain}, not {chain}")
        venue = self.locator.get_venue(chain, descriptor.variant)
        snapshot = await asyncio.wait_for(
            venue.read_snapshot(descriptor, token, decimals), timeout=self.stage_timeout
        )
        ratio = decode_ratio(snapshot, token)
        price = await self.ratio_to_usd(chain, ratio, descriptor.quote_asset_class)
        return PriceQuote(
            price_usd=price,
            source=QuoteSource.CACHED_VENUE,
            detail=str(descriptor),
            descriptor=descriptor,
        )

    async def _fresh_stage(self, chain: str, token: str, decimals: int) -> PriceQuote:
        candidate = await asyncio.wait_for(
            self.locator.locate_candidate(chain, token, decimals), timeout=self.stage_timeout
        )
        descriptor = candidate.descriptor
        ratio = decode_ratio(candidate.snapshot, token)
        price = await self.ratio_to_usd(chain, ratio, descriptor.quote_asset_class)
        return PriceQuote(
            price_usd=price,
            source=QuoteSource.FRESH_VENUE,
            detail=str(descriptor),
            descriptor=descriptor,
        )

    async def _aggregator_stage(self, chain: str, token: str) -> PriceQuote:
        fetchers = [f for f in self.aggregators.get(chain, []) if f.supports_chain(chain)]
        if not fetchers:
            raise StageFailed(f"no aggregators configured for {chain}")

        active = self.source_manager.filter_active(f.name for f in fetchers)
        skipped = [f.name for f in fetchers if f.name not in active]
        if skipped:
            logger.debug(f"[resolver] Skipping aggregators in backoff: {', '.join(skipped)}")

        reasons = []
        for fetcher in fetchers:
            if fetcher.name not in active:
                continue
            try:
                price = await asyncio.wait_for(
                    fetcher.fetch_token(chain, token), timeout=fetcher.timeout
                )
            except asyncio.TimeoutError:
                error = f"timed out after {fetcher.timeout}s"
            except FetcherError as e:
                error = str(e) or type(e).__name__
            else:
                error = None
            if error is not None:
                self.source_manager.record_failure(fetcher.name, error)
                reasons.append(f"{fetcher.name}: {error}")
                continue

            # The source answered; a missing price is specific to this token
            self.source_manager.record_success(fetcher.name)
            if price is None or not price > 0:
                reasons.append(f"{fetcher.name}: not listed")
                continue
            if fetcher.quote == "native":
                try:
                    price = await self.ratio_to_usd(chain, Fraction(price), QuoteAssetClass.NATIVE)
                except (PriceError, ValueError) as e:
                    reasons.append(f"{fetcher.name}: {e}")
                    continue
            return PriceQuote(
                price_usd=price,
                source=QuoteSource.AGGREGATOR_API,
                detail=fetcher.name,
            )

        if not reasons:
            raise StageFailed("all aggregators in backoff")
        raise StageFailed("; ".join(reasons))

    async def ratio_to_usd(
        self, chain: str, ratio: Fraction, quote_asset_class: QuoteAssetClass
    ) -> float:
        """Convert a ratio in the venue's quote asset to USD.

        Native-quoted ratios are multiplied by the chain's reference price;
        stable-quoted ratios are taken as USD.

        :raises AllSourcesFailedError: If the reference price is unavailable.
        :raises ValueError: If the result is not a positive finite float.
        """
        if QuoteAssetClass(quote_asset_class) == QuoteAssetClass.NATIVE:
            reference = await self.quote_cache.get_price_usd(NATIVE_REFERENCE_ASSET[chain])
            ratio = ratio * Fraction(reference)
        price = float(ratio)
        if not price > 0:
            raise ValueError(f"Price {ratio} does not convert to a positive float")
        return price
