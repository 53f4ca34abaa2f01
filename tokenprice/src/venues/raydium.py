"""Raydium venues on Solana (CP-Swap and AMM V4).

Solana has no pool registry to query by token pair. Pools are found with a
filtered ``getProgramAccounts`` scan: exact account size plus a ``memcmp``
on each mint offset, trying the token in both positions. Prices come from the
balances of the pool's two vault token accounts.
"""

import logging
from typing import Callable

from ..ChainConfig import RAYDIUM_AMM_V4_PROGRAM, RAYDIUM_CPMM_PROGRAM, QuoteAsset
from ..decoders import (
    AMM_V4_SPAN,
    CPMM_SPAN,
    VaultBalanceSnapshot,
    VaultLayout,
    parse_amm_v4_state,
    parse_cpmm_state,
)
from ..decoders.vault_balance import (
    AMM_V4_BASE_MINT_OFFSET,
    AMM_V4_QUOTE_MINT_OFFSET,
    CPMM_TOKEN_0_MINT_OFFSET,
    CPMM_TOKEN_1_MINT_OFFSET,
)
from ..errors import DecodeError
from ..PoolDescriptor import PoolDescriptor, Protocol
from .base import BaseVenue, VenueCandidate, register_venue

logger = logging.getLogger(__name__)


class RaydiumVenue(BaseVenue):
    """Shared scan/read logic for Raydium pool programs.

    :cvar program_id: Owning program of the pool accounts.
    :cvar account_size: Exact pool account size.
    :cvar mint_offsets: Byte offsets of the two mints in the account.
    """

    chain = "solana"
    protocol = Protocol.FOREIGN_VAULT_BALANCE
    program_id: str = ""
    account_size: int = 0
    mint_offsets: tuple[int, int] = (0, 0)
    parse: Callable[[bytes], VaultLayout]

    async def find_pools_for_quote(
        self, token: str, decimals: int, quote: QuoteAsset
    ) -> list[VenueCandidate]:
        offset_a, offset_b = self.mint_offsets
        candidates = []
        seen: set[str] = set()
        for token_offset, quote_offset in ((offset_a, offset_b), (offset_b, offset_a)):
            accounts = await self.client.get_program_accounts(
                self.program_id,
                data_size=self.account_size,
                memcmp=[(token_offset, token), (quote_offset, quote.address)],
            )
            for pubkey, data in accounts:
                if pubkey in seen:
                    continue
                seen.add(pubkey)
                try:
                    layout = self.parse(data)
                    snapshot = await self._read_balances(layout)
                except DecodeError as e:
                    logger.debug(f"[{self.name}] Skipping pool {pubkey}: {e}")
                    continue
                candidates.append(self.make_candidate(pubkey, quote, snapshot))
        return candidates

    async def read_snapshot(
        self, descriptor: PoolDescriptor, token: str, decimals: int
    ) -> VaultBalanceSnapshot:
        data = await self.client.get_account_info(descriptor.venue_identifier)
        if data is None:
            raise DecodeError(f"Pool account {descriptor.venue_identifier} does not exist")
        layout = self.parse(data)
        # Raises DecodeError if the cached pool no longer holds the token
        layout.other_mint(token)
        return await self._read_balances(layout)

    async def _read_balances(self, layout: VaultLayout) -> VaultBalanceSnapshot:
        balance_a = await self.client.get_token_account_balance(layout.vault_a)
        balance_b = await self.client.get_token_account_balance(layout.vault_b)
        return VaultBalanceSnapshot(
            mint_a=layout.mint_a,
            mint_b=layout.mint_b,
            balance_a=balance_a,
            balance_b=balance_b,
        )


@register_venue
class RaydiumCpmmVenue(RaydiumVenue):
    """Raydium CP-Swap (CPMM) pools."""

    name = "raydium_cpmm"
    program_id = RAYDIUM_CPMM_PROGRAM
    account_size = CPMM_SPAN
    mint_offsets = (CPMM_TOKEN_0_MINT_OFFSET, CPMM_TOKEN_1_MINT_OFFSET)
    parse = staticmethod(parse_cpmm_state)


@register_venue
class RaydiumAmmV4Venue(RaydiumVenue):
    """Raydium AMM V4 (legacy constant-product) pools."""

    name = "raydium_amm_v4"
    program_id = RAYDIUM_AMM_V4_PROGRAM
    account_size = AMM_V4_SPAN
    mint_offsets = (AMM_V4_BASE_MINT_OFFSET, AMM_V4_QUOTE_MINT_OFFSET)
    parse = staticmethod(parse_amm_v4_state)
