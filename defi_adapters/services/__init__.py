"""Shared services: metadata cache, token metadata, registry, underlying expansion."""
from .metadata_cache import MetadataCache, metadata_cache_key
from .metadata_store import FileMetadataStore, InMemoryMetadataStore
from .registry import AdapterRegistry
from .token_metadata import TokenMetadataResolver
from .underlying import expand_underlying_positions

__all__ = [
    "AdapterRegistry",
    "FileMetadataStore",
    "InMemoryMetadataStore",
    "MetadataCache",
    "TokenMetadataResolver",
    "expand_underlying_positions",
    "metadata_cache_key",
]
