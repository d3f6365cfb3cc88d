"""Mendi Finance (Compound fork on Linea) — market discovery shared by products."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ...chains import Chain
from ...chains.evm.abi import ZERO_ADDRESS
from ...errors import ContractCallReverted, NotSupportedError, ProtocolTokenNotFoundError
from ...models import TokenMetadata
from ...services.metadata_cache import Metadata
from ..base import SimplePoolAdapter
from ..rates import SECONDS_PER_YEAR, apr_to_apy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MendiContracts:
    comptroller: str
    speed: str
    oracle: str
    velocore: str
    converter: str
    mendi: str
    usdc_e: str


CONTRACT_ADDRESSES: dict[Chain, MendiContracts] = {
    Chain.LINEA: MendiContracts(
        comptroller="0x1b4d3b0421dDc1eB216D230Bc01527422Fb93103",
        speed="0x3b9B9364Bf69761d308145371c38D9b558013d40",
        oracle="0xCcBea2d7e074744ab46e28a043F85038bCcfFec2",
        velocore="0xaA18cDb16a4DD88a59f4c2f45b5c91d009549e06",
        converter="0xAADAa473C1bDF7317ec07c915680Af29DeBfdCb5",
        mendi="0x43E8809ea748EFf3204ee01F08872F063e44065f",
        usdc_e="0x176211869ca2b568f2a7d4ee941e073a821ee1ff",
    ),
}

METADATA_FILE_KEY = "mendi"


class MendiFinanceMarketAdapter(SimplePoolAdapter):
    """Markets (mTokens) listed by the comptroller, discovered once and cached."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        contracts = CONTRACT_ADDRESSES.get(self.chain_id)
        if contracts is None:
            raise NotSupportedError(f"Mendi Finance is not deployed on {self.chain_id.slug}")
        self.contracts = contracts

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def build_metadata(self) -> Metadata:
        """``{market: {"protocol_token": {...}, "underlying_token": {...}}}``."""
        return await self._cached_metadata(METADATA_FILE_KEY, self._discover_markets)

    async def _discover_markets(self) -> Metadata:
        (markets,) = await self._call(
            self.contracts.comptroller, "getAllMarkets()", ["address[]"]
        )
        entries = await asyncio.gather(*(self._describe_market(m) for m in markets))
        return {market.lower(): entry for market, entry in zip(markets, entries)}

    async def _describe_market(self, market: str) -> dict[str, dict]:
        try:
            underlying = await self._call_one(market, "underlying()", "address")
        except ContractCallReverted:
            # native ETH market has no underlying()
            underlying = ZERO_ADDRESS

        protocol_token, underlying_token = await asyncio.gather(
            self._token_metadata(market), self._token_metadata(underlying)
        )
        return {
            "protocol_token": protocol_token.to_dict(),
            "underlying_token": underlying_token.to_dict(),
        }

    async def _fetch_pool_metadata(
        self, protocol_token_address: str
    ) -> tuple[TokenMetadata, TokenMetadata]:
        entry = (await self.build_metadata()).get(protocol_token_address.lower())
        if entry is None:
            logger.error("Protocol token pool not found: %s", protocol_token_address)
            raise ProtocolTokenNotFoundError(
                f"Protocol token pool not found: {protocol_token_address}"
            )
        return (
            TokenMetadata.from_dict(entry["protocol_token"]),
            TokenMetadata.from_dict(entry["underlying_token"]),
        )

    def _position_token(
        self, protocol_token: TokenMetadata, underlying_token: TokenMetadata
    ) -> TokenMetadata:
        """How this product reports a market as its protocol token."""
        return protocol_token

    async def get_protocol_tokens(self) -> list[TokenMetadata]:
        metadata = await self.build_metadata()
        return [
            self._position_token(
                TokenMetadata.from_dict(entry["protocol_token"]),
                TokenMetadata.from_dict(entry["underlying_token"]),
            )
            for entry in metadata.values()
        ]

    async def fetch_protocol_token_metadata(
        self, protocol_token_address: str
    ) -> TokenMetadata:
        protocol_token, underlying_token = await self._fetch_pool_metadata(
            protocol_token_address
        )
        return self._position_token(protocol_token, underlying_token)

    async def fetch_underlying_tokens_metadata(
        self, protocol_token_address: str
    ) -> list[TokenMetadata]:
        _, underlying_token = await self._fetch_pool_metadata(protocol_token_address)
        return [underlying_token]

    # ------------------------------------------------------------------
    # Rates
    # ------------------------------------------------------------------

    async def _rate_per_second_apy(
        self, market: str, rate_signature: str, block_number: int | None
    ) -> float:
        rate = await self._call_one(
            market, rate_signature, "uint256", block_number=block_number
        )
        apr = rate * SECONDS_PER_YEAR / 1e18
        return apr_to_apy(apr, SECONDS_PER_YEAR)
