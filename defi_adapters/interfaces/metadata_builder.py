"""Metadata builder — adapters that discover their tokens once and cache them."""
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MetadataBuilder(Protocol):
    async def build_metadata(self) -> dict[str, Any]: ...
