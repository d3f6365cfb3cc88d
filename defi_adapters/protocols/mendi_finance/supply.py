"""Mendi Finance supply — mToken balances redeemable for the underlying."""
from __future__ import annotations

import asyncio
import logging

from ...models import (
    PositionType,
    ProtocolDetails,
    ProtocolTokenApr,
    ProtocolTokenApy,
    TokenBalance,
    TokenMetadata,
    Underlying,
    UnderlyingTokenRate,
)
from ..rates import SECONDS_PER_YEAR
from .markets import MendiFinanceMarketAdapter

logger = logging.getLogger(__name__)


def _bytes32_address(address: str) -> str:
    return "0x" + address.lower().removeprefix("0x").rjust(64, "0")


class MendiFinanceSupplyAdapter(MendiFinanceMarketAdapter):
    product_id = "supply"

    def get_protocol_details(self) -> ProtocolDetails:
        return ProtocolDetails(
            protocol_id=self.protocol_id,
            name="MendiFinance",
            description="MendiFinance supply adapter",
            site_url="https://mendi.finance/",
            icon_url="https://mendi.finance/mendi-token.svg",
            position_type=PositionType.SUPPLY,
            chain_id=int(self.chain_id),
            product_id=self.product_id,
        )

    async def get_underlying_token_balances(
        self,
        user_address: str,
        protocol_token_balance: TokenBalance,
        block_number: int | None = None,
    ) -> list[Underlying]:
        _, underlying_token = await self._fetch_pool_metadata(
            protocol_token_balance.address
        )
        # balanceOfUnderlying is state-changing; eth_call simulates it
        balance = await self._call_one(
            protocol_token_balance.address,
            "balanceOfUnderlying(address)",
            "uint256",
            user_address,
            block_number=block_number,
        )
        return [Underlying(**underlying_token.to_dict(), balance_raw=balance)]

    async def get_underlying_token_conversion_rate(
        self, protocol_token: TokenMetadata, block_number: int | None = None
    ) -> list[UnderlyingTokenRate]:
        [underlying_token] = await self.fetch_underlying_tokens_metadata(
            protocol_token.address
        )
        exchange_rate = await self._call_one(
            protocol_token.address,
            "exchangeRateCurrent()",
            "uint256",
            block_number=block_number,
        )
        # Scaled by 10^(18 - 8 + underlying decimals); mTokens have 8 decimals
        return [
            UnderlyingTokenRate(
                **underlying_token.to_dict(),
                underlying_rate_raw=exchange_rate // 10**10,
            )
        ]

    def _mint_burn_counterparty(self, protocol_token_address: str) -> str:
        # mTokens are minted from and redeemed to the market contract
        return protocol_token_address

    async def get_apy(
        self, protocol_token_address: str, block_number: int | None = None
    ) -> ProtocolTokenApy:
        protocol_token = await self.fetch_protocol_token_metadata(protocol_token_address)
        apy = await self._rate_per_second_apy(
            protocol_token.address, "supplyRatePerBlock()", block_number
        )
        return ProtocolTokenApy(**protocol_token.to_dict(), apy_decimal=apy * 100)

    async def get_apr(
        self, protocol_token_address: str, block_number: int | None = None
    ) -> ProtocolTokenApr:
        protocol_token = await self.fetch_protocol_token_metadata(protocol_token_address)
        apr = await self._reward_apr(protocol_token.address, block_number)
        return ProtocolTokenApr(**protocol_token.to_dict(), apr_decimal=apr * 100)

    async def _reward_apr(self, market: str, block_number: int | None) -> float:
        """MENDI emissions per year over the market's supplied value."""
        _, underlying_token = await self._fetch_pool_metadata(market)
        contracts = self.contracts

        (
            convert_value,
            mendi_price,
            supply_speed,
            token_supply,
            exchange_rate_stored,
            underlying_price,
        ) = await asyncio.gather(
            self._call_one(
                contracts.converter, "latestAnswer()", "int256",
                block_number=block_number,
            ),
            self._call_one(
                contracts.velocore,
                "spotPrice(bytes32,bytes32,uint256)",
                "uint256",
                _bytes32_address(contracts.mendi),
                _bytes32_address(contracts.usdc_e),
                10**18,
                block_number=block_number,
            ),
            # supplySpeed leads the returned market state
            self._call_one(
                contracts.speed,
                "rewardMarketState(address,address)",
                "uint256",
                contracts.mendi,
                market,
                block_number=block_number,
            ),
            self._call_one(market, "totalSupply()", "uint256", block_number=block_number),
            self._call_one(
                market, "exchangeRateStored()", "uint256", block_number=block_number
            ),
            self._call_one(
                contracts.oracle, "getPrice(address)", "uint256", market,
                block_number=block_number,
            ),
        )

        # USDC.e quote (6 decimals) through the converter feed (8 decimals)
        mendi_price_usd = round((mendi_price / 1e6) * (convert_value / 1e8), 3)
        market_total_supply = (
            (token_supply / 10**underlying_token.decimals)
            * (exchange_rate_stored / 1e18)
            * underlying_price
        )
        if market_total_supply == 0:
            logger.debug("Market %s has no supply, reward APR is zero", market)
            return 0.0
        return supply_speed * mendi_price_usd * SECONDS_PER_YEAR / market_total_supply
