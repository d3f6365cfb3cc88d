"""Supported EVM chains, keyed by chain id."""
from __future__ import annotations

from enum import IntEnum


class Chain(IntEnum):
    ETHEREUM = 1
    OPTIMISM = 10
    BSC = 56
    POLYGON = 137
    FANTOM = 250
    BASE = 8453
    ARBITRUM = 42161
    AVALANCHE = 43114
    LINEA = 59144

    @property
    def slug(self) -> str:
        return self.name.lower()

    @classmethod
    def from_name(cls, name: str) -> Chain:
        """Resolve ``"ethereum"`` / ``"ETHEREUM"`` / ``"1"`` to a chain."""
        value = name.strip()
        if value.isdigit():
            return cls(int(value))
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown chain '{name}'") from None


# Gas token reported for the zero address.
NATIVE_TOKENS: dict[Chain, tuple[str, str]] = {
    Chain.ETHEREUM: ("Ethereum", "ETH"),
    Chain.OPTIMISM: ("Ethereum", "ETH"),
    Chain.BSC: ("BNB", "BNB"),
    Chain.POLYGON: ("Matic", "MATIC"),
    Chain.FANTOM: ("Fantom", "FTM"),
    Chain.BASE: ("Ethereum", "ETH"),
    Chain.ARBITRUM: ("Ethereum", "ETH"),
    Chain.AVALANCHE: ("Avalanche", "AVAX"),
    Chain.LINEA: ("Ethereum", "ETH"),
}
