"""Lido wstETH — non-rebasing wrapper around stETH."""
from __future__ import annotations

from ...errors import ProtocolTokenNotFoundError
from ...models import (
    PositionType,
    ProtocolDetails,
    TokenBalance,
    TokenMetadata,
    Underlying,
    UnderlyingTokenRate,
)
from ..base import SimplePoolAdapter
from .st_eth import STETH

WSTETH = TokenMetadata(
    address="0x7f39C581F595B53c5cb19bD0b3f8dA6c935E2Ca0",
    name="Wrapped liquid staked Ether 2.0",
    symbol="wstETH",
    decimals=18,
)


class LidoWstEthAdapter(SimplePoolAdapter):
    product_id = "wst-eth"

    def get_protocol_details(self) -> ProtocolDetails:
        return ProtocolDetails(
            protocol_id=self.protocol_id,
            name="Lido",
            description="Lido wstETH adapter",
            site_url="https://lido.fi/",
            icon_url="https://lido.fi/favicon.ico",
            position_type=PositionType.STAKED,
            chain_id=int(self.chain_id),
            product_id=self.product_id,
        )

    async def get_protocol_tokens(self) -> list[TokenMetadata]:
        return [WSTETH]

    async def fetch_protocol_token_metadata(
        self, protocol_token_address: str
    ) -> TokenMetadata:
        if protocol_token_address.lower() != WSTETH.address.lower():
            raise ProtocolTokenNotFoundError(
                f"{protocol_token_address} is not a Lido wstETH token"
            )
        return WSTETH

    async def fetch_underlying_tokens_metadata(
        self, protocol_token_address: str
    ) -> list[TokenMetadata]:
        await self.fetch_protocol_token_metadata(protocol_token_address)
        return [STETH]

    async def get_underlying_token_balances(
        self,
        user_address: str,
        protocol_token_balance: TokenBalance,
        block_number: int | None = None,
    ) -> list[Underlying]:
        return await self.resolve_underlying_balance(protocol_token_balance, block_number)

    async def get_underlying_token_conversion_rate(
        self, protocol_token: TokenMetadata, block_number: int | None = None
    ) -> list[UnderlyingTokenRate]:
        [steth] = await self.fetch_underlying_tokens_metadata(protocol_token.address)
        # stETH per wstETH, 18 decimals
        steth_per_token = await self._call_one(
            WSTETH.address, "stEthPerToken()", "uint256", block_number=block_number
        )
        return [UnderlyingTokenRate(**steth.to_dict(), underlying_rate_raw=steth_per_token)]
