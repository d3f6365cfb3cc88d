"""Data models — all frozen (immutable).

Raw amounts (``balance_raw``, ``underlying_rate_raw``, ``total_supply_raw``)
are plain integers in the token's smallest unit.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any


class TokenType(str, Enum):
    PROTOCOL = "protocol"
    UNDERLYING = "underlying"
    UNDERLYING_CLAIMABLE = "underlying-claimable"


class PositionType(str, Enum):
    SUPPLY = "supply"
    LEND = "lend"
    BORROW = "borrow"
    STAKED = "staked"
    REWARD = "reward"


@dataclass(frozen=True)
class TokenMetadata:
    """ERC-20 style token metadata. Identity is (chain, address)."""

    address: str
    name: str
    symbol: str
    decimals: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TokenMetadata:
        return cls(
            address=raw["address"],
            name=raw["name"],
            symbol=raw["symbol"],
            decimals=int(raw["decimals"]),
        )

    def metadata(self) -> TokenMetadata:
        """Strip any subclass fields, keeping only the token identity."""
        return TokenMetadata(
            address=self.address,
            name=self.name,
            symbol=self.symbol,
            decimals=self.decimals,
        )


@dataclass(frozen=True)
class TokenBalance(TokenMetadata):
    balance_raw: int


@dataclass(frozen=True)
class Underlying(TokenBalance):
    """Underlying token quantity.

    ``tokens`` is set when the entry is itself a protocol token whose own
    underlyings have been expanded; ``type`` is then ``PROTOCOL``.
    """

    type: TokenType = TokenType.UNDERLYING
    tokens: tuple[Underlying, ...] | None = None


@dataclass(frozen=True)
class UnderlyingTokenRate(TokenMetadata):
    """Underlying amount (raw units) backing one whole protocol token."""

    underlying_rate_raw: int
    type: TokenType = TokenType.UNDERLYING


@dataclass(frozen=True)
class ProtocolPosition(TokenBalance):
    type: TokenType = TokenType.PROTOCOL
    tokens: tuple[Underlying, ...] = ()
    token_id: str | None = None


@dataclass(frozen=True)
class MovementToken(Underlying):
    transaction_hash: str = ""
    block_number: int = 0


@dataclass(frozen=True)
class MovementsByBlock:
    """One historical deposit or withdrawal event."""

    transaction_hash: str
    block_number: int
    protocol_token: TokenMetadata
    tokens: tuple[MovementToken, ...]
    token_id: str | None = None


@dataclass(frozen=True)
class ProtocolTokenUnderlyingRate(TokenMetadata):
    base_rate: int = 1
    type: TokenType = TokenType.PROTOCOL
    tokens: tuple[UnderlyingTokenRate, ...] = ()


@dataclass(frozen=True)
class ProtocolTokenApr(TokenMetadata):
    apr_decimal: float


@dataclass(frozen=True)
class ProtocolTokenApy(TokenMetadata):
    apy_decimal: float


@dataclass(frozen=True)
class UnderlyingTokenTvl(TokenMetadata):
    total_supply_raw: int
    type: TokenType = TokenType.UNDERLYING


@dataclass(frozen=True)
class ProtocolTokenTvl(TokenMetadata):
    total_supply_raw: int
    type: TokenType = TokenType.PROTOCOL
    tokens: tuple[UnderlyingTokenTvl, ...] = ()


@dataclass(frozen=True)
class ProtocolDetails:
    protocol_id: str
    name: str
    description: str
    site_url: str
    icon_url: str
    position_type: PositionType
    chain_id: int
    product_id: str


def to_jsonable(value: Any) -> Any:
    """Convert a model tree into plain JSON-ready values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    return value
