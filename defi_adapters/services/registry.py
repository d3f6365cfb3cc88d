"""Adapter registry — (protocol, chain) to adapter classes, with lazy instances."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from ..chains import Chain
from ..config import AppConfig
from ..errors import AdapterError, NotSupportedError, ProtocolNotImplementedError
from ..interfaces.chain import ChainClient
from ..interfaces.token_resolver import TokenResolver
from .metadata_cache import MetadataCache
from .metadata_store import FileMetadataStore
from .token_metadata import TokenMetadataResolver

if TYPE_CHECKING:
    from ..protocols.base import SimplePoolAdapter

logger = logging.getLogger(__name__)

# protocol id -> chain -> ordered adapter classes
SupportedTable = Mapping[str, Mapping[Chain, Sequence[type]]]


def _protocol_id(protocol: Any) -> str:
    return str(getattr(protocol, "value", protocol))


def _chain(chain: Chain | int | str) -> Chain:
    if isinstance(chain, Chain):
        return chain
    try:
        if isinstance(chain, int):
            return Chain(chain)
        return Chain.from_name(chain)
    except ValueError:
        raise NotSupportedError(f"Chain '{chain}' is not supported") from None


class AdapterRegistry:
    """Lookup table of adapters, shared by every adapter it constructs.

    The table is fixed at construction. Adapter instances and the per-chain
    protocol-token index are created on first use and never evicted.
    """

    def __init__(
        self,
        clients: Mapping[Chain, ChainClient],
        metadata_cache: MetadataCache,
        token_resolver: TokenResolver | None = None,
        supported: SupportedTable | None = None,
    ) -> None:
        if supported is None:
            from ..protocols.supported import SUPPORTED_PROTOCOLS

            supported = SUPPORTED_PROTOCOLS

        self._clients = dict(clients)
        self.metadata_cache = metadata_cache
        self.tokens: TokenResolver = token_resolver or TokenMetadataResolver()
        self._supported: dict[str, dict[Chain, tuple[type, ...]]] = {
            _protocol_id(protocol): {
                _chain(chain): tuple(classes) for chain, classes in chains.items()
            }
            for protocol, chains in supported.items()
        }
        self._instances: dict[tuple[str, Chain, str], SimplePoolAdapter] = {}
        self._token_indexes: dict[Chain, dict[str, SimplePoolAdapter]] = {}
        self._token_lists: dict[tuple[str, int, str], list[Any]] = {}
        self._index_tasks: dict[Chain, asyncio.Task[dict[str, SimplePoolAdapter]]] = {}

    @classmethod
    def from_config(cls, config: AppConfig) -> AdapterRegistry:
        from ..chains.evm import EvmClient

        clients = {chain: EvmClient(cfg) for chain, cfg in config.chains.items()}
        cache = MetadataCache(
            FileMetadataStore(config.metadata.directory),
            rebuild=config.metadata.rebuild,
        )
        return cls(clients, cache)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def support(self) -> dict[str, dict[str, list[str]]]:
        """``{protocol: {chain: [product, ...]}}`` for every registration."""
        return {
            protocol: {
                chain.slug: [c.product_id for c in classes]
                for chain, classes in chains.items()
            }
            for protocol, chains in self._supported.items()
        }

    def _adapter_classes(self, protocol: Any, chain: Chain) -> tuple[type, ...]:
        protocol_id = _protocol_id(protocol)
        chains = self._supported.get(protocol_id)
        if chains is None:
            raise NotSupportedError(f"Protocol '{protocol_id}' is not supported")
        if chain not in chains:
            raise NotSupportedError(
                f"Protocol '{protocol_id}' is not supported on {chain.slug}"
            )
        return chains[chain]

    def _instantiate(
        self, adapter_class: type, protocol_id: str, chain: Chain
    ) -> SimplePoolAdapter:
        key = (protocol_id, chain, adapter_class.product_id)
        if key in self._instances:
            return self._instances[key]

        client = self._clients.get(chain)
        if client is None:
            raise NotSupportedError(f"No RPC client configured for {chain.slug}")

        try:
            adapter = adapter_class(
                client=client, chain=chain, protocol=protocol_id, registry=self
            )
        except ProtocolNotImplementedError:
            raise
        except NotImplementedError as e:
            raise ProtocolNotImplementedError(
                f"{adapter_class.__name__} is not implemented: {e}"
            ) from e

        self._instances[key] = adapter
        return adapter

    def get_adapter(
        self, protocol: Any, chain: Chain | int | str, product: str
    ) -> SimplePoolAdapter:
        chain = _chain(chain)
        protocol_id = _protocol_id(protocol)
        for adapter_class in self._adapter_classes(protocol_id, chain):
            if adapter_class.product_id == product:
                return self._instantiate(adapter_class, protocol_id, chain)
        raise NotSupportedError(
            f"Product '{product}' of '{protocol_id}' is not supported on {chain.slug}"
        )

    def list_adapters(
        self, protocol: Any, chain: Chain | int | str
    ) -> list[SimplePoolAdapter]:
        chain = _chain(chain)
        protocol_id = _protocol_id(protocol)
        return [
            self._instantiate(adapter_class, protocol_id, chain)
            for adapter_class in self._adapter_classes(protocol_id, chain)
        ]

    def list_chain_adapters(self, chain: Chain | int | str) -> list[SimplePoolAdapter]:
        """Every adapter registered on ``chain``; unbuildable ones are skipped."""
        chain = _chain(chain)
        adapters: list[SimplePoolAdapter] = []
        for protocol_id, chains in self._supported.items():
            for adapter_class in chains.get(chain, ()):
                try:
                    adapters.append(self._instantiate(adapter_class, protocol_id, chain))
                except AdapterError as e:
                    logger.debug("Skipping %s on %s: %s", adapter_class.__name__, chain.slug, e)
        return adapters

    # ------------------------------------------------------------------
    # Protocol-token index
    # ------------------------------------------------------------------

    async def find_token_adapter(
        self, chain: Chain, token_address: str
    ) -> SimplePoolAdapter | None:
        """Adapter tracking ``token_address`` as a protocol token, if any."""
        index = await self._token_index(chain)
        return index.get(token_address.lower())

    async def _token_index(self, chain: Chain) -> dict[str, SimplePoolAdapter]:
        if chain in self._token_indexes:
            return self._token_indexes[chain]

        task = self._index_tasks.get(chain)
        if task is None:
            task = asyncio.ensure_future(self._build_token_index(chain))
            self._index_tasks[chain] = task
            task.add_done_callback(lambda _: self._index_tasks.pop(chain, None))
        return await task

    async def _build_token_index(self, chain: Chain) -> dict[str, SimplePoolAdapter]:
        adapters = self.list_chain_adapters(chain)
        token_lists = await asyncio.gather(
            *(self._adapter_protocol_tokens(adapter) for adapter in adapters)
        )

        index: dict[str, SimplePoolAdapter] = {}
        for adapter, tokens in zip(adapters, token_lists):
            for token in tokens or ():
                # First registration wins when two products share a token
                index.setdefault(token.address.lower(), adapter)

        if None in token_lists:
            # Not stored; the next lookup retries the adapters that failed
            logger.debug("Partial protocol-token index on %s", chain.slug)
        else:
            logger.debug("Indexed %d protocol tokens on %s", len(index), chain.slug)
            self._token_indexes[chain] = index
        return index

    async def _adapter_protocol_tokens(
        self, adapter: SimplePoolAdapter
    ) -> list[Any] | None:
        """Protocol tokens of ``adapter``; None when listing them failed."""
        if adapter.key in self._token_lists:
            return self._token_lists[adapter.key]
        try:
            tokens = await adapter.get_protocol_tokens()
        except ProtocolNotImplementedError:
            tokens = []
        except AdapterError as e:
            logger.warning("Protocol tokens unavailable for %s: %s", adapter.key, e)
            return None
        self._token_lists[adapter.key] = tokens
        return tokens
