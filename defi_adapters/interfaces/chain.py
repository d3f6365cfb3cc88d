"""Chain client protocol — EVM JSON-RPC abstraction."""
from typing import Any, Protocol


class ChainClient(Protocol):
    """Abstract interface for reading EVM chain state."""

    async def call(
        self,
        to: str,
        data: str,
        block_number: int | None = None,
        from_address: str | None = None,
    ) -> bytes: ...

    async def get_logs(
        self,
        address: str,
        topics: list[str | None],
        from_block: int,
        to_block: int,
    ) -> list[dict[str, Any]]: ...
