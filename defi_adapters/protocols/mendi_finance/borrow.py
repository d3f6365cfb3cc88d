"""Mendi Finance borrow — outstanding debt per market, denominated in the underlying."""
from __future__ import annotations

import asyncio

from ...errors import ProtocolNotImplementedError
from ...models import (
    MovementsByBlock,
    PositionType,
    ProtocolDetails,
    ProtocolTokenApy,
    ProtocolTokenTvl,
    TokenBalance,
    TokenMetadata,
    TokenType,
    Underlying,
    UnderlyingTokenRate,
    UnderlyingTokenTvl,
)
from ..base import with_balance
from .markets import MendiFinanceMarketAdapter


class MendiFinanceBorrowAdapter(MendiFinanceMarketAdapter):
    """Debt has no transferable token; the market stands in for it.

    The market is reported with the underlying's decimals so that debt
    amounts convert to the underlying one to one.
    """

    product_id = "borrow"

    def get_protocol_details(self) -> ProtocolDetails:
        return ProtocolDetails(
            protocol_id=self.protocol_id,
            name="MendiFinance",
            description="MendiFinance borrow adapter",
            site_url="https://mendi.finance/",
            icon_url="https://mendi.finance/mendi-token.svg",
            position_type=PositionType.BORROW,
            chain_id=int(self.chain_id),
            product_id=self.product_id,
        )

    def _position_token(
        self, protocol_token: TokenMetadata, underlying_token: TokenMetadata
    ) -> TokenMetadata:
        return TokenMetadata(
            address=protocol_token.address,
            name=protocol_token.name,
            symbol=protocol_token.symbol,
            decimals=underlying_token.decimals,
        )

    async def get_protocol_token_balances(
        self, user_address: str, block_number: int | None = None
    ) -> list[TokenBalance]:
        markets = await self.get_protocol_tokens()
        debts = await asyncio.gather(
            *(
                self._call_one(
                    market.address,
                    "borrowBalanceCurrent(address)",
                    "uint256",
                    user_address,
                    block_number=block_number,
                )
                for market in markets
            )
        )
        return [
            with_balance(market, debt)
            for market, debt in zip(markets, debts)
            if debt != 0
        ]

    async def get_underlying_token_balances(
        self,
        user_address: str,
        protocol_token_balance: TokenBalance,
        block_number: int | None = None,
    ) -> list[Underlying]:
        _, underlying_token = await self._fetch_pool_metadata(
            protocol_token_balance.address
        )
        return [
            Underlying(
                **underlying_token.to_dict(),
                balance_raw=protocol_token_balance.balance_raw,
            )
        ]

    async def get_underlying_token_conversion_rate(
        self, protocol_token: TokenMetadata, block_number: int | None = None
    ) -> list[UnderlyingTokenRate]:
        [underlying_token] = await self.fetch_underlying_tokens_metadata(
            protocol_token.address
        )
        return [
            UnderlyingTokenRate(
                **underlying_token.to_dict(),
                underlying_rate_raw=10**underlying_token.decimals,
            )
        ]

    async def _token_tvl(
        self, protocol_token: TokenMetadata, block_number: int | None
    ) -> ProtocolTokenTvl:
        (_, underlying_token), total_borrows = await asyncio.gather(
            self._fetch_pool_metadata(protocol_token.address),
            self._call_one(
                protocol_token.address,
                "totalBorrowsCurrent()",
                "uint256",
                block_number=block_number,
            ),
        )
        return ProtocolTokenTvl(
            **protocol_token.metadata().to_dict(),
            total_supply_raw=total_borrows,
            tokens=(
                UnderlyingTokenTvl(
                    **underlying_token.to_dict(),
                    total_supply_raw=total_borrows,
                    type=TokenType.UNDERLYING,
                ),
            ),
        )

    async def get_apy(
        self, protocol_token_address: str, block_number: int | None = None
    ) -> ProtocolTokenApy:
        protocol_token = await self.fetch_protocol_token_metadata(protocol_token_address)
        apy = await self._rate_per_second_apy(
            protocol_token.address, "borrowRatePerBlock()", block_number
        )
        return ProtocolTokenApy(**protocol_token.to_dict(), apy_decimal=apy * 100)

    async def get_deposits(
        self,
        user_address: str,
        protocol_token_address: str,
        from_block: int,
        to_block: int,
        token_id: str | None = None,
    ) -> list[MovementsByBlock]:
        raise ProtocolNotImplementedError("Borrows are not tracked as deposits")

    async def get_withdrawals(
        self,
        user_address: str,
        protocol_token_address: str,
        from_block: int,
        to_block: int,
        token_id: str | None = None,
    ) -> list[MovementsByBlock]:
        raise ProtocolNotImplementedError("Repayments are not tracked as withdrawals")
