"""Foreign-vault-balance decoder (Raydium AMM V4 and CP-Swap on Solana).

Solana pools keep their reserves in separate SPL token accounts ("vaults").
The pool account only tells which mints and vaults belong together; the
price is the ratio of the two vault balances.

Account layouts parsed here:

- Raydium AMM V4 (``LIQUIDITY_STATE_LAYOUT_V4``): 752 bytes, 32 u64 fields and
  6 swap counters, then pubkeys: baseVault@336, quoteVault@368,
  baseMint@400, quoteMint@432. baseDecimal/quoteDecimal are u64 at 32/40.
- Raydium CP-Swap ``PoolState``: 637 bytes, 8-byte Anchor discriminator, then
  token_0_vault@72, token_1_vault@104, token_0_mint@168, token_1_mint@200,
  mint_0_decimals@331, mint_1_decimals@332.
"""

import hashlib
import struct
from dataclasses import dataclass
from fractions import Fraction

import base58

from ..errors import DecodeError, ZeroLiquidityError
from ..PoolDescriptor import Protocol
from .base import BaseDecoder, register_decoder, same_asset

AMM_V4_SPAN = 752
AMM_V4_BASE_DECIMAL_OFFSET = 32
AMM_V4_QUOTE_DECIMAL_OFFSET = 40
AMM_V4_BASE_VAULT_OFFSET = 336
AMM_V4_QUOTE_VAULT_OFFSET = 368
AMM_V4_BASE_MINT_OFFSET = 400
AMM_V4_QUOTE_MINT_OFFSET = 432

CPMM_SPAN = 637
CPMM_DISCRIMINATOR = hashlib.sha256(b"account:PoolState").digest()[:8]
CPMM_TOKEN_0_VAULT_OFFSET = 72
CPMM_TOKEN_1_VAULT_OFFSET = 104
CPMM_TOKEN_0_MINT_OFFSET = 168
CPMM_TOKEN_1_MINT_OFFSET = 200
CPMM_MINT_0_DECIMALS_OFFSET = 331
CPMM_MINT_1_DECIMALS_OFFSET = 332


@dataclass(frozen=True)
class VaultLayout:
    """Mints and vaults of a Solana pool account, in storage order.

    :ivar mint_a: Base mint (AMM V4) or token_0 mint (CP-Swap).
    :ivar mint_b: Quote mint (AMM V4) or token_1 mint (CP-Swap).
    :ivar vault_a: Token account holding mint_a.
    :ivar vault_b: Token account holding mint_b.
    :ivar decimals_a: Decimals of mint_a as recorded in the pool.
    :ivar decimals_b: Decimals of mint_b as recorded in the pool.
    """

    mint_a: str
    mint_b: str
    vault_a: str
    vault_b: str
    decimals_a: int
    decimals_b: int

    def other_mint(self, mint: str) -> str:
        """Return the mint paired with ``mint``.

        :raises DecodeError: If ``mint`` is not part of the pool.
        """
        if same_asset(mint, self.mint_a):
            return self.mint_b
        if same_asset(mint, self.mint_b):
            return self.mint_a
        raise DecodeError(f"Mint {mint} is not part of pool {self.mint_a}/{self.mint_b}")


@dataclass(frozen=True)
class VaultBalanceSnapshot:
    """Decimal-normalized vault balances of a Solana pool.

    :ivar mint_a: Mint held by the first vault.
    :ivar mint_b: Mint held by the second vault.
    :ivar balance_a: Balance of the first vault in whole tokens.
    :ivar balance_b: Balance of the second vault in whole tokens.
    """

    mint_a: str
    mint_b: str
    balance_a: Fraction
    balance_b: Fraction


def _pubkey(data: bytes, offset: int) -> str:
    return base58.b58encode(data[offset:offset + 32]).decode("ascii")


def parse_amm_v4_state(data: bytes) -> VaultLayout:
    """Parse a Raydium AMM V4 pool account.

    :param data: Raw account data.
    :returns: Mints, vaults and decimals.
    :raises DecodeError: If the data length does not match the layout.
    """
    if len(data) != AMM_V4_SPAN:
        raise DecodeError(f"AMM V4 account must be {AMM_V4_SPAN} bytes, got {len(data)}")
    base_decimals, = struct.unpack_from("<Q", data, AMM_V4_BASE_DECIMAL_OFFSET)
    quote_decimals, = struct.unpack_from("<Q", data, AMM_V4_QUOTE_DECIMAL_OFFSET)
    return VaultLayout(
        mint_a=_pubkey(data, AMM_V4_BASE_MINT_OFFSET),
        mint_b=_pubkey(data, AMM_V4_QUOTE_MINT_OFFSET),
        vault_a=_pubkey(data, AMM_V4_BASE_VAULT_OFFSET),
        vault_b=_pubkey(data, AMM_V4_QUOTE_VAULT_OFFSET),
        decimals_a=base_decimals,
        decimals_b=quote_decimals,
    )


def parse_cpmm_state(data: bytes) -> VaultLayout:
    """Parse a Raydium CP-Swap pool account.

    :param data: Raw account data.
    :returns: Mints, vaults and decimals.
    :raises DecodeError: If the length or Anchor discriminator does not match.
    """
    if len(data) != CPMM_SPAN:
        raise DecodeError(f"CP-Swap account must be {CPMM_SPAN} bytes, got {len(data)}")
    if data[:8] != CPMM_DISCRIMINATOR:
        raise DecodeError(f"CP-Swap discriminator mismatch: {data[:8].hex()}")
    return VaultLayout(
        mint_a=_pubkey(data, CPMM_TOKEN_0_MINT_OFFSET),
        mint_b=_pubkey(data, CPMM_TOKEN_1_MINT_OFFSET),
        vault_a=_pubkey(data, CPMM_TOKEN_0_VAULT_OFFSET),
        vault_b=_pubkey(data, CPMM_TOKEN_1_VAULT_OFFSET),
        decimals_a=data[CPMM_MINT_0_DECIMALS_OFFSET],
        decimals_b=data[CPMM_MINT_1_DECIMALS_OFFSET],
    )


def decode_vault_balances(snapshot: VaultBalanceSnapshot, target: str) -> Fraction:
    """Price of ``target`` in the pool's other mint.

    :param snapshot: Vault balances.
    :param target: Mint being priced.
    :returns: other_balance / target_balance.
    :raises DecodeError: If target is not in the pool.
    :raises ZeroLiquidityError: If either vault is empty.
    """
    if same_asset(target, snapshot.mint_a):
        target_balance, pair_balance = snapshot.balance_a, snapshot.balance_b
    elif same_asset(target, snapshot.mint_b):
        target_balance, pair_balance = snapshot.balance_b, snapshot.balance_a
    else:
        raise DecodeError(
            f"Mint {target} is not part of pool {snapshot.mint_a}/{snapshot.mint_b}"
        )
    if target_balance == 0 or pair_balance == 0:
        raise ZeroLiquidityError(f"Empty vault in pool {snapshot.mint_a}/{snapshot.mint_b}")
    return Fraction(pair_balance) / Fraction(target_balance)


@register_decoder
class VaultBalanceDecoder(BaseDecoder):
    """Decoder for Solana vault balance snapshots."""

    protocol = Protocol.FOREIGN_VAULT_BALANCE
    snapshot_type = VaultBalanceSnapshot

    def decode(self, snapshot: VaultBalanceSnapshot, target: str) -> Fraction:
        return decode_vault_balances(snapshot, target)

    def liquidity(self, snapshot: VaultBalanceSnapshot) -> Fraction:
        return Fraction(snapshot.balance_a) + Fraction(snapshot.balance_b)
