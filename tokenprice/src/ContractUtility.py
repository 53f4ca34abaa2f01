"""ContractUtility: AsyncWeb3 initialization and contract ABI loading."""

import json
from functools import lru_cache
from pathlib import Path

from web3 import AsyncWeb3

from .ChainConfig import get_rpc_url, get_rpc_timeout

ABI_DIR = Path(__file__).parent.parent / "abi"


class ContractUtility:
    """Utility for AsyncWeb3 connection and contract ABI loading.

    :ivar network: Network RPC URL.
    :ivar w3: AsyncWeb3 instance over an HTTP provider.
    """

    def __init__(self, chain: str, rpc_url: str | None = None, timeout: float | None = None) -> None:
        """Initialize the contract utility.

        :param chain: Name of the chain to connect to ("bsc", "base", "ethereum").
        :param rpc_url: Explicit RPC URL; defaults to ``<CHAIN>_RPC_URL`` or the public endpoint.
        :param timeout: HTTP request timeout in seconds.
        """
        self.network = rpc_url or get_rpc_url(chain)
        self.w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(
                self.network,
                request_kwargs={"timeout": timeout or get_rpc_timeout()},
            )
        )

    @staticmethod
    @lru_cache(maxsize=None)
    def get_abi(contract_name: str) -> list:
        """Load the ABI of a contract from the packaged abi folder.

        :param contract_name: Name of the contract (e.g., "UniswapV2Pair").
        :returns: ABI as a list of entries.
        :raises FileNotFoundError: If no ABI is packaged under that name.
        """
        with open(ABI_DIR / f"{contract_name}.json", "r") as file:
            return json.load(file)

    @staticmethod
    def get_available_abis() -> list[str]:
        """Names of all packaged ABIs."""
        return sorted(path.stem for path in ABI_DIR.glob("*.json"))
