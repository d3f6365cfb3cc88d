"""ERC-20 token metadata lookup with a per-process memo."""
from __future__ import annotations

import asyncio
import logging

from ..chains import NATIVE_TOKENS, Chain
from ..chains.evm.abi import ZERO_ADDRESS, decode_output, encode_call
from ..errors import TokenMetadataError, UpstreamCallError
from ..interfaces.chain import ChainClient
from ..models import TokenMetadata

logger = logging.getLogger(__name__)


def _decode_text(data: bytes) -> str:
    """Decode a ``string`` return value, falling back to ``bytes32`` (e.g. MKR)."""
    try:
        (value,) = decode_output(["string"], data)
        return value
    except UpstreamCallError:
        if len(data) != 32:
            raise
        return data.rstrip(b"\x00").decode("utf-8", errors="replace")


def native_token_metadata(chain: Chain) -> TokenMetadata:
    name, symbol = NATIVE_TOKENS.get(chain, ("Ethereum", "ETH"))
    return TokenMetadata(address=ZERO_ADDRESS, name=name, symbol=symbol, decimals=18)


class TokenMetadataResolver:
    """Resolve and memoise token metadata per (chain, address)."""

    def __init__(self) -> None:
        self._cache: dict[tuple[Chain, str], TokenMetadata] = {}

    async def get_token_metadata(
        self, address: str, chain: Chain, client: ChainClient
    ) -> TokenMetadata:
        key = (chain, address.lower())
        if key in self._cache:
            return self._cache[key]

        if address.lower() == ZERO_ADDRESS:
            metadata = native_token_metadata(chain)
        else:
            metadata = await self._fetch(address, client)

        self._cache[key] = metadata
        return metadata

    async def _fetch(self, address: str, client: ChainClient) -> TokenMetadata:
        try:
            name_raw, symbol_raw, decimals_raw = await asyncio.gather(
                client.call(address, encode_call("name()")),
                client.call(address, encode_call("symbol()")),
                client.call(address, encode_call("decimals()")),
            )
            (decimals,) = decode_output(["uint8"], decimals_raw)
            name = _decode_text(name_raw)
            symbol = _decode_text(symbol_raw)
        except UpstreamCallError as e:
            logger.error("Token metadata lookup failed for %s: %s", address, e)
            raise TokenMetadataError(
                f"{address} does not look like an ERC-20 token: {e}"
            ) from e

        return TokenMetadata(
            address=address, name=name, symbol=symbol, decimals=int(decimals)
        )
