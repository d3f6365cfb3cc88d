"""Protocol adapter — per protocol / product / chain position reading."""
from typing import Protocol

from ..chains import Chain
from ..models import (
    MovementsByBlock,
    ProtocolDetails,
    ProtocolPosition,
    ProtocolTokenApr,
    ProtocolTokenApy,
    ProtocolTokenTvl,
    ProtocolTokenUnderlyingRate,
    TokenMetadata,
)


class ProtocolAdapter(Protocol):
    """Public surface every adapter exposes to callers."""

    protocol_id: str
    product_id: str
    chain_id: Chain

    def get_protocol_details(self) -> ProtocolDetails: ...

    async def get_protocol_tokens(self) -> list[TokenMetadata]: ...

    async def get_positions(
        self, user_address: str, block_number: int | None = None
    ) -> list[ProtocolPosition]: ...

    async def get_deposits(
        self,
        user_address: str,
        protocol_token_address: str,
        from_block: int,
        to_block: int,
        token_id: str | None = None,
    ) -> list[MovementsByBlock]: ...

    async def get_withdrawals(
        self,
        user_address: str,
        protocol_token_address: str,
        from_block: int,
        to_block: int,
        token_id: str | None = None,
    ) -> list[MovementsByBlock]: ...

    async def get_protocol_token_to_underlying_token_rate(
        self, protocol_token_address: str, block_number: int | None = None
    ) -> ProtocolTokenUnderlyingRate: ...

    async def get_total_value_locked(
        self,
        protocol_token_addresses: list[str] | None = None,
        block_number: int | None = None,
    ) -> list[ProtocolTokenTvl]: ...

    async def get_apr(
        self, protocol_token_address: str, block_number: int | None = None
    ) -> ProtocolTokenApr: ...

    async def get_apy(
        self, protocol_token_address: str, block_number: int | None = None
    ) -> ProtocolTokenApy: ...
