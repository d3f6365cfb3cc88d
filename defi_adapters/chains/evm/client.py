"""EVM JSON-RPC client with fallback support."""
from __future__ import annotations

import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import ChainConfig
from ...errors import ContractCallReverted, UpstreamCallError

logger = logging.getLogger(__name__)


def _block_tag(block_number: int | None) -> str:
    return "latest" if block_number is None else hex(block_number)


def _is_revert(error: Any) -> bool:
    message = str(error.get("message", "")) if isinstance(error, dict) else str(error)
    return "revert" in message.lower()


class EvmClient:
    """EVM JSON-RPC client with automatic endpoint fallback."""

    def __init__(self, config: ChainConfig) -> None:
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.current_rpc_index = 0

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make RPC call with fallback to alternative endpoints.

        Reverts are raised without trying the next endpoint.
        """
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
                        if "error" in result:
                            error = result["error"]
                            if _is_revert(error):
                                raise ContractCallReverted(
                                    f"{method} reverted: {error}"
                                )
                            raise UpstreamCallError(f"RPC Error: {error}")

                        if rpc_index != self.current_rpc_index:
                            logger.info("Switched to RPC endpoint: %s", rpc_url)
                            self.current_rpc_index = rpc_index

                        return result.get("result")
            except ContractCallReverted:
                raise
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise UpstreamCallError(f"All RPC endpoints failed. Last error: {last_error}")

    async def call(
        self,
        to: str,
        data: str,
        block_number: int | None = None,
        from_address: str | None = None,
    ) -> bytes:
        """``eth_call`` at ``block_number`` (latest when omitted)."""
        tx: dict[str, str] = {"to": to, "data": data}
        if from_address:
            tx["from"] = from_address
        result = await self.rpc_call("eth_call", [tx, _block_tag(block_number)])
        if not isinstance(result, str):
            raise UpstreamCallError(f"eth_call returned {result!r}")
        return bytes.fromhex(result.removeprefix("0x"))

    async def get_logs(
        self,
        address: str,
        topics: list[str | None],
        from_block: int,
        to_block: int,
    ) -> list[dict[str, Any]]:
        """``eth_getLogs`` for one contract over an inclusive block range."""
        result = await self.rpc_call(
            "eth_getLogs",
            [
                {
                    "address": address,
                    "topics": topics,
                    "fromBlock": hex(from_block),
                    "toBlock": hex(to_block),
                }
            ],
        )
        if not isinstance(result, list):
            raise UpstreamCallError(f"eth_getLogs returned {result!r}")
        return result

    async def block_number(self) -> int:
        result = await self.rpc_call("eth_blockNumber", [])
        return int(result, 16)
