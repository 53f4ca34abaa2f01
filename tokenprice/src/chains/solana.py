"""Solana chain client: JSON-RPC 2.0 over the shared httpx client.

Only the read calls needed for price discovery are implemented:

- ``getAccountInfo`` (base64 data)
- ``getProgramAccounts`` with ``dataSize``/``memcmp`` filters
- ``getTokenAccountBalance`` and ``getTokenSupply``
"""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
from fractions import Fraction
from typing import Any

import httpx

from ..ChainConfig import get_rpc_timeout, get_rpc_url
from ..ChainThrottle import ChainThrottle
from ..errors import RpcError, RpcTimeoutError
from ..fetchers.base import BaseFetcher

logger = logging.getLogger(__name__)


def _ui_amount(value: dict) -> Fraction:
    """Exact whole-token amount from a ``UiTokenAmount`` object."""
    return Fraction(int(value["amount"]), 10 ** int(value["decimals"]))


class SolanaClient:
    """Read-only Solana RPC access.

    :ivar rpc_url: JSON-RPC endpoint.
    :ivar throttle: Concurrency/spacing limiter (public RPC needs spacing).
    :ivar timeout: Per-call timeout in seconds.
    """

    chain = "solana"

    def __init__(
        self,
        rpc_url: str | None = None,
        throttle: ChainThrottle | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        :param rpc_url: Endpoint; defaults to ``SOLANA_RPC_URL`` or mainnet-beta.
        :param throttle: Limiter; defaults to the configured Solana limits.
        :param timeout: Per-call timeout in seconds.
        :param http_client: HTTP client; defaults to the shared fetcher client.
        """
        self.rpc_url = rpc_url or get_rpc_url("solana")
        self.throttle = throttle or ChainThrottle.for_chain("solana")
        self.timeout = timeout or get_rpc_timeout()
        self._http_client = http_client
        self._ids = itertools.count(1)
        self._decimals: dict[str, int] = {}

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client or BaseFetcher.get_shared_client()

    async def request(self, method: str, params: list) -> Any:
        """Send one JSON-RPC request and return its ``result``.

        :raises RpcTimeoutError: If the request exceeds the timeout.
        :raises RpcError: On HTTP errors, malformed bodies or RPC error objects.
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        async with self.throttle.slot():
            try:
                response = await asyncio.wait_for(
                    self.http_client.post(self.rpc_url, json=payload),
                    timeout=self.timeout,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException) as e:
                raise RpcTimeoutError(f"[solana] {method} timed out after {self.timeout}s") from e
            except httpx.RequestError as e:
                raise RpcError(f"[solana] {method} failed: {e}") from e

        if not response.is_success:
            raise RpcError(f"[solana] {method} HTTP {response.status_code}: {response.text[:200]}")
        try:
            body = response.json()
        except ValueError as e:
            raise RpcError(f"[solana] {method} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise RpcError(f"[solana] {method} returned unexpected body: {body!r}"[:300])
        if body.get("error"):
            raise RpcError(f"[solana] {method} error: {body['error']}")
        return body.get("result")

    async def get_account_info(self, pubkey: str) -> bytes | None:
        """Raw account data, or None if the account does not exist."""
        result = await self.request("getAccountInfo", [pubkey, {"encoding": "base64"}])
        value = (result or {}).get("value")
        if value is None:
            return None
        return base64.b64decode(value["data"][0])

    async def get_program_accounts(
        self,
        program_id: str,
        data_size: int | None = None,
        memcmp: list[tuple[int, str]] | None = None,
    ) -> list[tuple[str, bytes]]:
        """Accounts owned by a program, filtered server-side.

        :param program_id: Owning program.
        :param data_size: Exact account size filter.
        :param memcmp: (offset, base58 bytes) filters.
        :returns: (pubkey, raw data) pairs.
        """
        filters: list[dict] = []
        if data_size is not None:
            filters.append({"dataSize": data_size})
        for offset, value in memcmp or []:
            filters.append({"memcmp": {"offset": offset, "bytes": value}})
        config: dict[str, Any] = {"encoding": "base64"}
        if filters:
            config["filters"] = filters

        result = await self.request("getProgramAccounts", [program_id, config])
        accounts = []
        for item in result or []:
            try:
                data = base64.b64decode(item["account"]["data"][0])
            except (KeyError, IndexError, TypeError, ValueError) as e:
                logger.warning(f"[solana] Skipping malformed program account: {e}")
                continue
            accounts.append((item["pubkey"], data))
        return accounts

    async def get_token_account_balance(self, account: str) -> Fraction:
        """Balance of an SPL token account in whole tokens."""
        result = await self.request("getTokenAccountBalance", [account])
        try:
            return _ui_amount(result["value"])
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(f"[solana] Malformed token balance for {account}: {e}") from e

    async def get_token_supply(self, mint: str) -> Fraction:
        """Total supply of a mint in whole tokens."""
        result = await self.request("getTokenSupply", [mint])
        try:
            value = result["value"]
            self._decimals[mint] = int(value["decimals"])
            return _ui_amount(value)
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(f"[solana] Malformed token supply for {mint}: {e}") from e

    async def decimals(self, mint: str) -> int:
        """Mint decimals, cached (read through ``getTokenSupply``)."""
        if mint not in self._decimals:
            await self.get_token_supply(mint)
        return self._decimals[mint]
