"""Expand underlying tokens that are themselves protocol tokens of another adapter.

A wstETH position has stETH as its underlying; stETH is tracked by the Lido
stETH adapter, so the stETH leaf is replaced by a node whose ``tokens`` hold
the ETH it is worth. Expansion recurses until no adapter claims a token.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Sequence

from ..chains import Chain
from ..errors import AdapterError
from ..models import ProtocolPosition, TokenType, Underlying

if TYPE_CHECKING:
    from ..protocols.base import SimplePoolAdapter
    from .registry import AdapterRegistry

logger = logging.getLogger(__name__)

# (adapter key, lower-case token address) pairs on the current expansion path
_Path = frozenset[tuple[tuple[str, int, str], str]]


async def expand_underlying_positions(
    registry: AdapterRegistry,
    adapter: SimplePoolAdapter,
    positions: Sequence[ProtocolPosition],
    block_number: int | None = None,
) -> list[ProtocolPosition]:
    """Return ``positions`` with every nested protocol token expanded in place."""
    chain = adapter.chain_id

    async def expand_position(position: ProtocolPosition) -> ProtocolPosition:
        path: _Path = frozenset({(adapter.key, position.address.lower())})
        tokens = await _expand_tokens(
            registry, chain, position.tokens, path, block_number
        )
        return replace(position, tokens=tokens)

    return list(await asyncio.gather(*(expand_position(p) for p in positions)))


async def _expand_tokens(
    registry: AdapterRegistry,
    chain: Chain,
    tokens: Sequence[Underlying],
    path: _Path,
    block_number: int | None,
) -> tuple[Underlying, ...]:
    expanded = await asyncio.gather(
        *(_expand_token(registry, chain, t, path, block_number) for t in tokens)
    )
    return tuple(expanded)


async def _expand_token(
    registry: AdapterRegistry,
    chain: Chain,
    token: Underlying,
    path: _Path,
    block_number: int | None,
) -> Underlying:
    nested_adapter = await registry.find_token_adapter(chain, token.address)

    if token.tokens is not None:
        # Already expanded: descend without re-resolving this node
        if nested_adapter is not None:
            path = path | {(nested_adapter.key, token.address.lower())}
        children = await _expand_tokens(
            registry, chain, token.tokens, path, block_number
        )
        return replace(token, tokens=children)

    if nested_adapter is None:
        return token

    node = (nested_adapter.key, token.address.lower())
    if node in path:
        logger.debug("Cycle at %s on %s, keeping leaf", token.symbol, nested_adapter.key)
        return token

    try:
        children = await nested_adapter.resolve_underlying_balance(token, block_number)
    except AdapterError as e:
        logger.warning(
            "Could not expand %s (%s) via %s: %s",
            token.symbol, token.address, nested_adapter.key, e,
        )
        return token

    expanded_children = await _expand_tokens(
        registry, chain, children, path | {node}, block_number
    )
    return replace(token, type=TokenType.PROTOCOL, tokens=expanded_children)
