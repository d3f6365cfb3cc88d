"""Lido stETH — rebasing staked ETH, redeemable 1:1 for ETH."""
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
from ...services.token_metadata import native_token_metadata
from ..base import SimplePoolAdapter

STETH = TokenMetadata(
    address="0xae7ab96520DE3A18E5e111B5EaAb095312D7fE84",
    name="Liquid staked Ether 2.0",
    symbol="stETH",
    decimals=18,
)


class LidoStEthAdapter(SimplePoolAdapter):
    product_id = "st-eth"

    def get_protocol_details(self) -> ProtocolDetails:
        return ProtocolDetails(
            protocol_id=self.protocol_id,
            name="Lido",
            description="Lido stETH adapter",
            site_url="https://lido.fi/",
            icon_url="https://lido.fi/favicon.ico",
            position_type=PositionType.STAKED,
            chain_id=int(self.chain_id),
            product_id=self.product_id,
        )

    async def get_protocol_tokens(self) -> list[TokenMetadata]:
        return [STETH]

    async def fetch_protocol_token_metadata(
        self, protocol_token_address: str
    ) -> TokenMetadata:
        if protocol_token_address.lower() != STETH.address.lower():
            raise ProtocolTokenNotFoundError(
                f"{protocol_token_address} is not a Lido stETH token"
            )
        return STETH

    async def fetch_underlying_tokens_metadata(
        self, protocol_token_address: str
    ) -> list[TokenMetadata]:
        await self.fetch_protocol_token_metadata(protocol_token_address)
        return [native_token_metadata(self.chain_id)]

    async def get_underlying_token_balances(
        self,
        user_address: str,
        protocol_token_balance: TokenBalance,
        block_number: int | None = None,
    ) -> list[Underlying]:
        [eth] = await self.fetch_underlying_tokens_metadata(protocol_token_balance.address)
        return [Underlying(**eth.to_dict(), balance_raw=protocol_token_balance.balance_raw)]

    async def get_underlying_token_conversion_rate(
        self, protocol_token: TokenMetadata, block_number: int | None = None
    ) -> list[UnderlyingTokenRate]:
        [eth] = await self.fetch_underlying_tokens_metadata(protocol_token.address)
        return [UnderlyingTokenRate(**eth.to_dict(), underlying_rate_raw=10**eth.decimals)]
