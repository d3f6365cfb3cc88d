"""Protocol interfaces for the adapter library."""
from .chain import ChainClient
from .metadata_builder import MetadataBuilder
from .metadata_store import MetadataStore
from .protocol_adapter import ProtocolAdapter
from .token_resolver import TokenResolver

__all__ = [
    "ChainClient",
    "MetadataBuilder",
    "MetadataStore",
    "ProtocolAdapter",
    "TokenResolver",
]
