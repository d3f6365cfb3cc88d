"""Token metadata resolver protocol."""
from typing import Protocol

from ..chains import Chain
from ..models import TokenMetadata
from .chain import ChainClient


class TokenResolver(Protocol):
    """Resolves name / symbol / decimals for an ERC-20 style address."""

    async def get_token_metadata(
        self, address: str, chain: Chain, client: ChainClient
    ) -> TokenMetadata: ...
