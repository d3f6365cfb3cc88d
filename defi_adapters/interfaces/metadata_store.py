"""Metadata store protocol — durable key to JSON blob storage."""
from typing import Any, Protocol


class MetadataStore(Protocol):
    """Keyed JSON store backing the metadata cache."""

    def read(self, key: str) -> dict[str, Any] | None: ...

    def write(self, key: str, value: dict[str, Any]) -> None: ...
