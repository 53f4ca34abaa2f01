"""Read-only chain RPC clients."""

from .evm import EvmClient
from .solana import SolanaClient

__all__ = ["EvmClient", "SolanaClient"]
