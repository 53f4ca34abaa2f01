"""EVM chain client: throttled, time-bounded contract reads over AsyncWeb3."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from web3 import AsyncWeb3

from ..ChainConfig import get_rpc_timeout
from ..ChainThrottle import ChainThrottle
from ..ContractUtility import ContractUtility
from ..errors import RpcError, RpcTimeoutError

logger = logging.getLogger(__name__)


class EvmClient:
    """Read-only contract access for one EVM chain.

    Every call acquires a slot from the chain throttle and is bounded by
    ``timeout``. Failures surface as :class:`RpcTimeoutError` or
    :class:`RpcError`; nothing else escapes.

    :ivar chain: Chain name.
    :ivar w3: AsyncWeb3 instance.
    :ivar throttle: Concurrency/spacing limiter.
    :ivar timeout: Per-call timeout in seconds.
    """

    def __init__(
        self,
        chain: str,
        rpc_url: str | None = None,
        throttle: ChainThrottle | None = None,
        timeout: float | None = None,
    ) -> None:
        self.chain = chain
        self.timeout = timeout or get_rpc_timeout()
        self.w3 = ContractUtility(chain, rpc_url, timeout=self.timeout).w3
        self.throttle = throttle or ChainThrottle.for_chain(chain)
        self._decimals: dict[str, int] = {}

    def contract(self, address: str, abi_name: str) -> Any:
        """Bind a packaged ABI to an address."""
        return self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(address),
            abi=ContractUtility.get_abi(abi_name),
        )

    async def call(self, address: str, abi_name: str, function: str, *args: Any) -> Any:
        """Call a view function.

        :param address: Contract address.
        :param abi_name: Packaged ABI name (e.g., "UniswapV2Pair").
        :param function: Function name.
        :param args: Function arguments.
        :returns: Decoded return value (tuple for multiple outputs).
        :raises RpcTimeoutError: If the call exceeds the timeout.
        :raises RpcError: On any transport or contract failure.
        """
        label = f"{function}@{address}"
        try:
            bound = getattr(self.contract(address, abi_name).functions, function)(*args)
        except (ValueError, TypeError, AttributeError) as e:
            raise RpcError(f"[{self.chain}] Cannot build call {label}: {e}") from e
        return await self._execute(bound.call, label)

    async def _execute(self, request: Callable[[], Awaitable[Any]], label: str) -> Any:
        async with self.throttle.slot():
            try:
                result = await asyncio.wait_for(request(), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                raise RpcTimeoutError(
                    f"[{self.chain}] {label} timed out after {self.timeout}s"
                ) from e
            except Exception as e:
                raise RpcError(f"[{self.chain}] {label} failed: {e}") from e
        logger.debug(f"[{self.chain}] {label} -> {result}")
        return result

    async def decimals(self, token: str) -> int:
        """ERC-20 decimals, cached per token."""
        key = token.lower()
        if key not in self._decimals:
            self._decimals[key] = int(await self.call(token, "ERC20", "decimals"))
        return self._decimals[key]

    async def total_supply(self, token: str) -> int:
        """Raw ERC-20 total supply."""
        return int(await self.call(token, "ERC20", "totalSupply"))

    async def close(self) -> None:
        """Release the provider's cached HTTP session."""
        await self.w3.provider.disconnect()
