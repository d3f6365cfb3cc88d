"""Position resolution base — the generic algorithm every pool-style adapter shares.

Subclasses describe one protocol / product / chain: which tokens it tracks,
how a balance decomposes into underlying tokens, and at what rate. This class
turns those hooks into positions, conversion rates, TVL and movements.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Sequence

from ..chains import Chain
from ..chains.evm.abi import (
    TRANSFER_EVENT,
    ZERO_ADDRESS,
    address_topic,
    decode_log_data,
    decode_output,
    encode_call,
    event_topic,
    parse_quantity,
)
from ..errors import ProtocolNotImplementedError
from ..interfaces.chain import ChainClient
from ..models import (
    MovementsByBlock,
    MovementToken,
    ProtocolDetails,
    ProtocolPosition,
    ProtocolTokenApr,
    ProtocolTokenApy,
    ProtocolTokenTvl,
    ProtocolTokenUnderlyingRate,
    TokenBalance,
    TokenMetadata,
    Underlying,
    UnderlyingTokenRate,
    UnderlyingTokenTvl,
)
from ..services.metadata_cache import BuildMetadata, Metadata, metadata_cache_key
from ..services.underlying import expand_underlying_positions

if TYPE_CHECKING:
    from ..services.registry import AdapterRegistry



def with_balance(token: TokenMetadata, balance_raw: int) -> TokenBalance:
    return TokenBalance(**token.metadata().to_dict(), balance_raw=balance_raw)


def scale(amount_raw: int, rate_raw: int, decimals: int) -> int:
    """``amount_raw`` protocol units at ``rate_raw`` per whole token, floored."""
    return amount_raw * rate_raw // 10**decimals


class SimplePoolAdapter(ABC):
    """Base class for adapters whose positions are fungible protocol tokens."""

    product_id: str = ""

    def __init__(
        self,
        *,
        client: ChainClient,
        chain: Chain,
        protocol: str,
        registry: AdapterRegistry,
    ) -> None:
        self._client = client
        self.chain_id = chain
        self.protocol_id = protocol
        self._registry = registry

    @property
    def key(self) -> tuple[str, int, str]:
        return (self.protocol_id, int(self.chain_id), self.product_id)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def get_protocol_details(self) -> ProtocolDetails: ...

    @abstractmethod
    async def get_protocol_tokens(self) -> list[TokenMetadata]:
        """Every protocol token this adapter tracks."""

    @abstractmethod
    async def get_underlying_token_balances(
        self,
        user_address: str,
        protocol_token_balance: TokenBalance,
        block_number: int | None = None,
    ) -> list[Underlying]:
        """Decompose one of the user's protocol-token balances."""

    @abstractmethod
    async def fetch_protocol_token_metadata(
        self, protocol_token_address: str
    ) -> TokenMetadata: ...

    @abstractmethod
    async def fetch_underlying_tokens_metadata(
        self, protocol_token_address: str
    ) -> list[TokenMetadata]:
        """Tokens a whole ``protocol_token_address`` is backed by, in rate order."""

    @abstractmethod
    async def get_underlying_token_conversion_rate(
        self, protocol_token: TokenMetadata, block_number: int | None = None
    ) -> list[UnderlyingTokenRate]:
        """Underlying amount backing one whole ``protocol_token``."""

    async def get_protocol_token_balances(
        self, user_address: str, block_number: int | None = None
    ) -> list[TokenBalance]:
        """ERC-20 ``balanceOf`` for each protocol token; zero balances dropped."""
        protocol_tokens = await self.get_protocol_tokens()
        balances = await asyncio.gather(
            *(
                self._call_one(
                    token.address,
                    "balanceOf(address)",
                    "uint256",
                    user_address,
                    block_number=block_number,
                )
                for token in protocol_tokens
            )
        )
        return [
            with_balance(token, balance)
            for token, balance in zip(protocol_tokens, balances)
            if balance != 0
        ]

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    async def get_positions(
        self, user_address: str, block_number: int | None = None
    ) -> list[ProtocolPosition]:
        balances = [
            b
            for b in await self.get_protocol_token_balances(user_address, block_number)
            if b.balance_raw != 0
        ]
        underlyings = await asyncio.gather(
            *(
                self.get_underlying_token_balances(user_address, b, block_number)
                for b in balances
            )
        )
        positions = [
            ProtocolPosition(
                **balance.metadata().to_dict(),
                balance_raw=balance.balance_raw,
                tokens=tuple(tokens),
            )
            for balance, tokens in zip(balances, underlyings)
        ]
        return await self._resolve_underlying_positions(positions, block_number)

    async def _resolve_underlying_positions(
        self, positions: Sequence[ProtocolPosition], block_number: int | None
    ) -> list[ProtocolPosition]:
        return await expand_underlying_positions(
            self._registry, self, positions, block_number
        )

    async def resolve_underlying_balance(
        self, protocol_token_balance: TokenBalance, block_number: int | None = None
    ) -> list[Underlying]:
        """Rate-based decomposition of a balance held by anyone."""
        rates = await self.get_underlying_token_conversion_rate(
            protocol_token_balance.metadata(), block_number
        )
        return [
            Underlying(
                **rate.metadata().to_dict(),
                balance_raw=scale(
                    protocol_token_balance.balance_raw,
                    rate.underlying_rate_raw,
                    protocol_token_balance.decimals,
                ),
                type=rate.type,
            )
            for rate in rates
        ]

    # ------------------------------------------------------------------
    # Rates and TVL
    # ------------------------------------------------------------------

    async def get_protocol_token_to_underlying_token_rate(
        self, protocol_token_address: str, block_number: int | None = None
    ) -> ProtocolTokenUnderlyingRate:
        protocol_token = await self.fetch_protocol_token_metadata(protocol_token_address)
        rates = await self.get_underlying_token_conversion_rate(
            protocol_token, block_number
        )
        return ProtocolTokenUnderlyingRate(
            **protocol_token.metadata().to_dict(), base_rate=1, tokens=tuple(rates)
        )

    async def get_total_value_locked(
        self,
        protocol_token_addresses: list[str] | None = None,
        block_number: int | None = None,
    ) -> list[ProtocolTokenTvl]:
        protocol_tokens = await self.get_protocol_tokens()
        if protocol_token_addresses:
            wanted = {a.lower() for a in protocol_token_addresses}
            protocol_tokens = [t for t in protocol_tokens if t.address.lower() in wanted]

        return list(
            await asyncio.gather(
                *(self._token_tvl(token, block_number) for token in protocol_tokens)
            )
        )

    async def _token_tvl(
        self, protocol_token: TokenMetadata, block_number: int | None
    ) -> ProtocolTokenTvl:
        total_supply, rates = await asyncio.gather(
            self._call_one(
                protocol_token.address, "totalSupply()", "uint256",
                block_number=block_number,
            ),
            self.get_underlying_token_conversion_rate(protocol_token, block_number),
        )
        return ProtocolTokenTvl(
            **protocol_token.metadata().to_dict(),
            total_supply_raw=total_supply,
            tokens=tuple(
                UnderlyingTokenTvl(
                    **rate.metadata().to_dict(),
                    total_supply_raw=scale(
                        total_supply, rate.underlying_rate_raw, protocol_token.decimals
                    ),
                    type=rate.type,
                )
                for rate in rates
            ),
        )

    async def get_apr(
        self, protocol_token_address: str, block_number: int | None = None
    ) -> ProtocolTokenApr:
        raise ProtocolNotImplementedError(f"APR is not available for {self.key}")

    async def get_apy(
        self, protocol_token_address: str, block_number: int | None = None
    ) -> ProtocolTokenApy:
        raise ProtocolNotImplementedError(f"APY is not available for {self.key}")

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
        """Protocol tokens minted to the user, valued at each event's block."""
        return await self._get_transfer_movements(
            user_address, protocol_token_address, from_block, to_block, deposit=True
        )

    async def get_withdrawals(
        self,
        user_address: str,
        protocol_token_address: str,
        from_block: int,
        to_block: int,
        token_id: str | None = None,
    ) -> list[MovementsByBlock]:
        """Protocol tokens burned by the user, valued at each event's block."""
        return await self._get_transfer_movements(
            user_address, protocol_token_address, from_block, to_block, deposit=False
        )

    def _mint_burn_counterparty(self, protocol_token_address: str) -> str:
        """Address on the other side of mint / burn transfers."""
        return ZERO_ADDRESS

    async def _get_transfer_movements(
        self,
        user_address: str,
        protocol_token_address: str,
        from_block: int,
        to_block: int,
        deposit: bool,
    ) -> list[MovementsByBlock]:
        protocol_token = await self.fetch_protocol_token_metadata(protocol_token_address)
        counterparty = address_topic(self._mint_burn_counterparty(protocol_token.address))
        user = address_topic(user_address)
        sender, recipient = (counterparty, user) if deposit else (user, counterparty)

        logs = await self._client.get_logs(
            protocol_token.address,
            [event_topic(TRANSFER_EVENT), sender, recipient],
            from_block,
            to_block,
        )
        return list(
            await asyncio.gather(
                *(self._transfer_to_movement(protocol_token, log) for log in logs)
            )
        )

    async def _transfer_to_movement(
        self, protocol_token: TokenMetadata, log: dict[str, Any]
    ) -> MovementsByBlock:
        (value,) = decode_log_data(["uint256"], log["data"])
        block_number = parse_quantity(log["blockNumber"])
        transaction_hash = log["transactionHash"]

        rates = await self.get_underlying_token_conversion_rate(
            protocol_token, block_number
        )
        return MovementsByBlock(
            transaction_hash=transaction_hash,
            block_number=block_number,
            protocol_token=protocol_token.metadata(),
            tokens=tuple(
                MovementToken(
                    **rate.metadata().to_dict(),
                    balance_raw=scale(value, rate.underlying_rate_raw, protocol_token.decimals),
                    type=rate.type,
                    transaction_hash=transaction_hash,
                    block_number=block_number,
                )
                for rate in rates
            ),
        )

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    async def _call(
        self,
        to: str,
        signature: str,
        output_types: Sequence[str],
        *args: Any,
        block_number: int | None = None,
        from_address: str | None = None,
    ) -> tuple[Any, ...]:
        data = await self._client.call(
            to,
            encode_call(signature, *args),
            block_number=block_number,
            from_address=from_address,
        )
        return decode_output(output_types, data)

    async def _call_one(
        self,
        to: str,
        signature: str,
        output_type: str,
        *args: Any,
        block_number: int | None = None,
        from_address: str | None = None,
    ) -> Any:
        (value,) = await self._call(
            to,
            signature,
            [output_type],
            *args,
            block_number=block_number,
            from_address=from_address,
        )
        return value

    async def _token_metadata(self, address: str) -> TokenMetadata:
        return await self._registry.tokens.get_token_metadata(
            address, self.chain_id, self._client
        )

    async def _cached_metadata(self, file_key: str, build: BuildMetadata) -> Metadata:
        key = metadata_cache_key(
            self.protocol_id, self.product_id, self.chain_id.slug, file_key
        )
        return await self._registry.metadata_cache.get_or_build(key, build)
