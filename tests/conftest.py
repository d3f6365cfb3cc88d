"""Shared test fixtures: a fake EVM chain client, registry and sample config."""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Callable

import pytest
from eth_abi import decode, encode
from eth_utils import keccak

from defi_adapters.chains import Chain
from defi_adapters.config import AppConfig, ChainConfig, MetadataConfig
from defi_adapters.errors import ContractCallReverted, UpstreamCallError
from defi_adapters.services import AdapterRegistry, InMemoryMetadataStore, MetadataCache

USER = "0x1111111111111111111111111111111111111111"


def _argument_types(signature: str) -> list[str]:
    inner = signature[signature.index("(") + 1 : signature.rindex(")")]
    return [t for t in inner.split(",") if t]


# ---------------------------------------------------------------------------
# Fake chain client
# ---------------------------------------------------------------------------


class FakeChainClient:
    """Answers ``eth_call`` per (contract, function) with ABI-encoded values.

    A response is either a fixed tuple of values or a callable receiving the
    decoded arguments and a ``block_number`` keyword. Every call is recorded.
    """

    def __init__(self) -> None:
        self._responses: dict[tuple[str, bytes], tuple[list[str], list[str], Any]] = {}
        self.logs: list[dict[str, Any]] = []
        self.calls: list[dict[str, Any]] = []
        self.log_queries: list[dict[str, Any]] = []

    def respond(
        self,
        address: str,
        signature: str,
        output_types: list[str],
        values: tuple | Callable[..., tuple],
    ) -> None:
        selector = keccak(text=signature)[:4]
        self._responses[(address.lower(), selector)] = (
            _argument_types(signature),
            output_types,
            values,
        )

    def revert(self, address: str, signature: str, reason: str = "") -> None:
        message = f"execution reverted: {reason}".strip()

        def raise_revert(*_: Any, **__: Any) -> tuple:
            raise ContractCallReverted(message)

        self.respond(address, signature, [], raise_revert)

    def add_token(self, address: str, name: str, symbol: str, decimals: int) -> None:
        self.respond(address, "name()", ["string"], (name,))
        self.respond(address, "symbol()", ["string"], (symbol,))
        self.respond(address, "decimals()", ["uint8"], (decimals,))

    def calls_to(self, signature: str) -> list[dict[str, Any]]:
        selector = keccak(text=signature)[:4]
        return [c for c in self.calls if c["selector"] == selector]

    async def call(
        self,
        to: str,
        data: str,
        block_number: int | None = None,
        from_address: str | None = None,
    ) -> bytes:
        raw = bytes.fromhex(data.removeprefix("0x"))
        selector = raw[:4]
        self.calls.append(
            {
                "to": to.lower(),
                "selector": selector,
                "block_number": block_number,
                "from_address": from_address,
            }
        )

        response = self._responses.get((to.lower(), selector))
        if response is None:
            raise UpstreamCallError(f"No fake response for {to} selector 0x{selector.hex()}")

        argument_types, output_types, values = response
        if callable(values):
            args = decode(argument_types, raw[4:])
            values = values(*args, block_number=block_number)
        return encode(output_types, list(values))

    async def get_logs(
        self,
        address: str,
        topics: list[str | None],
        from_block: int,
        to_block: int,
    ) -> list[dict[str, Any]]:
        self.log_queries.append(
            {"address": address, "topics": topics, "from": from_block, "to": to_block}
        )
        return [
            log
            for log in self.logs
            if log["address"].lower() == address.lower()
            and from_block <= int(log["blockNumber"], 16) <= to_block
            and all(
                want is None or (i < len(log["topics"]) and log["topics"][i] == want)
                for i, want in enumerate(topics)
            )
        ]

    def add_log(
        self,
        address: str,
        topics: list[str],
        data_types: list[str],
        data_values: list[Any],
        block_number: int,
        transaction_hash: str,
    ) -> None:
        self.logs.append(
            {
                "address": address,
                "topics": topics,
                "data": "0x" + encode(data_types, data_values).hex(),
                "blockNumber": hex(block_number),
                "transactionHash": transaction_hash,
            }
        )


@pytest.fixture()
def fake_client() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture()
def metadata_store() -> InMemoryMetadataStore:
    return InMemoryMetadataStore()


@pytest.fixture()
def metadata_cache(metadata_store: InMemoryMetadataStore) -> MetadataCache:
    return MetadataCache(metadata_store)


@pytest.fixture()
def registry(fake_client: FakeChainClient, metadata_cache: MetadataCache) -> AdapterRegistry:
    """Registry over the real protocol table, every chain served by ``fake_client``."""
    return AdapterRegistry({chain: fake_client for chain in Chain}, metadata_cache)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
    )


@pytest.fixture()
def sample_app_config(sample_chain_config: ChainConfig, tmp_path: Path) -> AppConfig:
    return AppConfig(
        chains={Chain.ETHEREUM: sample_chain_config, Chain.LINEA: sample_chain_config},
        metadata=MetadataConfig(directory=str(tmp_path / "metadata")),
    )


SAMPLE_YAML = textwrap.dedent("""\
    chains:
      ethereum:
        rpc_endpoints: ["https://rpc.example.com", "https://rpc2.example.com"]
        rpc_timeout: 10
      linea:
        rpc_endpoints: ["https://linea.example.com"]
    metadata:
      directory: /tmp/defi-metadata
      rebuild: true
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
