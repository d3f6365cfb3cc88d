"""iZiSwap concentrated liquidity — one NFT per position in the liquidity manager."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from ...chains import Chain
from ...chains.evm.abi import MAX_UINT128, decode_log_data, event_topic, parse_quantity, uint_topic
from ...errors import (
    NotSupportedError,
    PreconditionError,
    ProtocolNotImplementedError,
    UpstreamCallError,
)
from ...models import (
    MovementsByBlock,
    MovementToken,
    PositionType,
    ProtocolDetails,
    ProtocolPosition,
    ProtocolTokenTvl,
    ProtocolTokenUnderlyingRate,
    TokenBalance,
    TokenMetadata,
    TokenType,
    Underlying,
    UnderlyingTokenRate,
)
from ..base import SimplePoolAdapter

logger = logging.getLogger(__name__)

LIQUIDITY_MANAGERS: dict[Chain, str] = {
    Chain.ARBITRUM: "0xAD1F11FBB288Cd13819cCB9397E59FAAB4Cdc16F",
    Chain.LINEA: "0x1CB60033F61e4fc171c963f0d2d3F63Ece24319c",
    Chain.BSC: "0xBF55ef05412f1528DbD96ED9E7181f87d8C9F453",
    Chain.BASE: "0x110dE362cc436D7f54210f96b8C7652C2617887D",
}

ADD_LIQUIDITY_EVENT = "AddLiquidity(uint256,address,uint128,uint256,uint256)"
DEC_LIQUIDITY_EVENT = "DecLiquidity(uint256,address,uint128,uint256,uint256)"
# Non-indexed part of both events: pool, liquidityDelta, amountX, amountY
LIQUIDITY_EVENT_DATA = ["address", "uint128", "uint256", "uint256"]

LIQUIDITY_FIELDS = [
    "int24",    # leftPt
    "int24",    # rightPt
    "uint128",  # liquidity
    "uint256",  # lastFeeScaleX_128
    "uint256",  # lastFeeScaleY_128
    "uint256",  # remainTokenX
    "uint256",  # remainTokenY
    "uint128",  # poolId
]

DEADLINE = 0xFFFFFFFF
POSITION_DECIMALS = 18


def position_name(symbol_x: str, symbol_y: str, fee: int) -> str:
    return f"{symbol_x} / {symbol_y} - {fee}"


class IZiSwapAdapter(SimplePoolAdapter):
    """Liquidity NFTs held by the user.

    Positions are not fungible, so protocol-token listing, conversion rates
    and TVL are unavailable. Movements need the NFT ``token_id``.
    """

    product_id = "iziswap"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        liquidity_manager = LIQUIDITY_MANAGERS.get(self.chain_id)
        if liquidity_manager is None:
            raise NotSupportedError(f"iZiSwap is not deployed on {self.chain_id.slug}")
        self.liquidity_manager = liquidity_manager

    def get_protocol_details(self) -> ProtocolDetails:
        return ProtocolDetails(
            protocol_id=self.protocol_id,
            name="IZiSwap",
            description="IZiSwap defi adapter",
            site_url="https://izumi.finance",
            icon_url="https://izumi.finance/assets/sidebar/logo.svg",
            position_type=PositionType.SUPPLY,
            chain_id=int(self.chain_id),
            product_id=self.product_id,
        )

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    async def get_positions(
        self, user_address: str, block_number: int | None = None
    ) -> list[ProtocolPosition]:
        count = await self._call_one(
            self.liquidity_manager, "balanceOf(address)", "uint256", user_address,
            block_number=block_number,
        )
        positions = await asyncio.gather(
            *(self._position_at(user_address, i, block_number) for i in range(count))
        )
        return await self._resolve_underlying_positions(
            [p for p in positions if p is not None], block_number
        )

    async def _position_at(
        self, user_address: str, index: int, block_number: int | None
    ) -> ProtocolPosition | None:
        manager = self.liquidity_manager
        token_id = await self._call_one(
            manager, "tokenOfOwnerByIndex(address,uint256)", "uint256",
            user_address, index, block_number=block_number,
        )
        liquidity = await self._call(
            manager, "liquidities(uint256)", LIQUIDITY_FIELDS, token_id,
            block_number=block_number,
        )
        amount, pool_id = liquidity[2], liquidity[7]
        if amount == 0:
            logger.debug("Skipping emptied iZiSwap NFT %s", token_id)
            return None

        token_x, token_y, fee = await self._call(
            manager, "poolMetas(uint128)", ["address", "address", "uint24"], pool_id,
            block_number=block_number,
        )
        principal, fees, metadata_x, metadata_y = await asyncio.gather(
            self._call(
                manager,
                "decLiquidity(uint256,uint128,uint256,uint256,uint256)",
                ["uint256", "uint256"],
                token_id, amount, 0, 0, DEADLINE,
                block_number=block_number,
                from_address=user_address,
            ),
            self._call(
                manager,
                "collect(address,uint256,uint128,uint128)",
                ["uint256", "uint256"],
                user_address, token_id, MAX_UINT128, MAX_UINT128,
                block_number=block_number,
                from_address=user_address,
            ),
            self._token_metadata(token_x),
            self._token_metadata(token_y),
        )

        name = position_name(metadata_x.symbol, metadata_y.symbol, fee)
        return ProtocolPosition(
            address=manager,
            name=name,
            symbol=name,
            decimals=POSITION_DECIMALS,
            balance_raw=amount,
            token_id=str(token_id),
            tokens=(
                _underlying(token_x, metadata_x, principal[0], TokenType.UNDERLYING),
                _underlying(token_x, metadata_x, fees[0], TokenType.UNDERLYING_CLAIMABLE),
                _underlying(token_y, metadata_y, principal[1], TokenType.UNDERLYING),
                _underlying(token_y, metadata_y, fees[1], TokenType.UNDERLYING_CLAIMABLE),
            ),
        )

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    async def get_deposits(
        self,
        user_address: str,
        protocol_token_address: str,
        from_block: int,
        to_block: int,
        token_id: str | None = None,
    ) -> list[MovementsByBlock]:
        if not token_id:
            raise PreconditionError("token_id is required for iZiSwap deposits")
        return await self._liquidity_movements(
            protocol_token_address, ADD_LIQUIDITY_EVENT, from_block, to_block, token_id
        )

    async def get_withdrawals(
        self,
        user_address: str,
        protocol_token_address: str,
        from_block: int,
        to_block: int,
        token_id: str | None = None,
    ) -> list[MovementsByBlock]:
        if not token_id:
            raise PreconditionError("token_id is required for iZiSwap withdrawals")
        return await self._liquidity_movements(
            protocol_token_address, DEC_LIQUIDITY_EVENT, from_block, to_block, token_id
        )

    async def _liquidity_movements(
        self,
        manager: str,
        event: str,
        from_block: int,
        to_block: int,
        token_id: str,
    ) -> list[MovementsByBlock]:
        try:
            nft_id = int(token_id)
        except ValueError:
            raise PreconditionError(
                f"iZiSwap token_id must be an integer, got {token_id!r}"
            ) from None
        try:
            liquidity = await self._call(
                manager, "liquidities(uint256)", LIQUIDITY_FIELDS, nft_id,
                block_number=to_block,
            )
            token_x, token_y, fee = await self._call(
                manager, "poolMetas(uint128)", ["address", "address", "uint24"],
                liquidity[7], block_number=to_block,
            )
        except UpstreamCallError as e:
            if "Invalid token ID" in str(e):
                raise PreconditionError(
                    f"iZiSwap token_id {token_id} does not exist at block {to_block}; "
                    "not minted yet or already burned"
                ) from e
            raise

        metadata_x, metadata_y, logs = await asyncio.gather(
            self._token_metadata(token_x),
            self._token_metadata(token_y),
            self._client.get_logs(
                manager, [event_topic(event), uint_topic(nft_id)], from_block, to_block
            ),
        )

        name = position_name(metadata_x.symbol, metadata_y.symbol, fee)
        protocol_token = TokenMetadata(
            address=manager, name=name, symbol=name, decimals=POSITION_DECIMALS
        )
        return [
            _liquidity_movement(protocol_token, token_id, metadata_x, metadata_y, log)
            for log in logs
        ]

    # ------------------------------------------------------------------
    # Fungible-token operations
    # ------------------------------------------------------------------

    async def get_protocol_tokens(self) -> list[TokenMetadata]:
        raise ProtocolNotImplementedError("iZiSwap positions are NFTs")

    async def fetch_protocol_token_metadata(
        self, protocol_token_address: str
    ) -> TokenMetadata:
        raise ProtocolNotImplementedError("iZiSwap positions are NFTs")

    async def fetch_underlying_tokens_metadata(
        self, protocol_token_address: str
    ) -> list[TokenMetadata]:
        raise ProtocolNotImplementedError("iZiSwap positions are NFTs")

    async def get_underlying_token_balances(
        self,
        user_address: str,
        protocol_token_balance: TokenBalance,
        block_number: int | None = None,
    ) -> list[Underlying]:
        raise ProtocolNotImplementedError()

    async def get_underlying_token_conversion_rate(
        self, protocol_token: TokenMetadata, block_number: int | None = None
    ) -> list[UnderlyingTokenRate]:
        raise ProtocolNotImplementedError()

    async def resolve_underlying_balance(
        self, protocol_token_balance: TokenBalance, block_number: int | None = None
    ) -> list[Underlying]:
        raise ProtocolNotImplementedError()

    async def get_protocol_token_to_underlying_token_rate(
        self, protocol_token_address: str, block_number: int | None = None
    ) -> ProtocolTokenUnderlyingRate:
        raise ProtocolNotImplementedError()

    async def get_total_value_locked(
        self,
        protocol_token_addresses: list[str] | None = None,
        block_number: int | None = None,
    ) -> list[ProtocolTokenTvl]:
        raise ProtocolNotImplementedError()


def _underlying(
    address: str, metadata: TokenMetadata, balance_raw: int, token_type: TokenType
) -> Underlying:
    return Underlying(
        address=address,
        name=metadata.name,
        symbol=metadata.symbol,
        decimals=metadata.decimals,
        balance_raw=balance_raw,
        type=token_type,
    )


def _liquidity_movement(
    protocol_token: TokenMetadata,
    token_id: str,
    metadata_x: TokenMetadata,
    metadata_y: TokenMetadata,
    log: dict[str, Any],
) -> MovementsByBlock:
    _, _, amount_x, amount_y = decode_log_data(LIQUIDITY_EVENT_DATA, log["data"])
    block_number = parse_quantity(log["blockNumber"])
    transaction_hash = log["transactionHash"]

    def movement(metadata: TokenMetadata, amount: int) -> MovementToken:
        return MovementToken(
            **metadata.to_dict(),
            balance_raw=amount,
            transaction_hash=transaction_hash,
            block_number=block_number,
        )

    return MovementsByBlock(
        transaction_hash=transaction_hash,
        block_number=block_number,
        protocol_token=protocol_token,
        tokens=(movement(metadata_x, amount_x), movement(metadata_y, amount_y)),
        token_id=token_id,
    )
