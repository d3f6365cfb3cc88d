"""Build-once metadata cache backed by a durable keyed store.

Adapters discover their protocol-token universe with many RPC calls. The
result is computed at most once per key per process, written to the store,
and read back from the store on later runs.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from ..interfaces.metadata_store import MetadataStore

logger = logging.getLogger(__name__)

Metadata = dict[str, Any]
BuildMetadata = Callable[[], Awaitable[Metadata]]


def metadata_cache_key(protocol: str, product: str, chain: str, file_key: str) -> str:
    return f"{protocol}/{product}/{chain}.{file_key}"


class MetadataCache:
    """Coalescing get-or-build cache.

    Args:
        store: Durable key -> JSON store.
        rebuild: Skip store reads and always run the builder (once per key).
    """

    def __init__(self, store: MetadataStore, rebuild: bool = False) -> None:
        self._store = store
        self._rebuild = rebuild
        self._values: dict[str, Metadata] = {}
        self._pending: dict[str, asyncio.Task[Metadata]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._values

    async def get_or_build(self, key: str, build: BuildMetadata) -> Metadata:
        if key in self._values:
            return self._values[key]

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load_or_build(key, build))
            self._pending[key] = task
            task.add_done_callback(lambda _: self._pending.pop(key, None))
        return await task

    async def _load_or_build(self, key: str, build: BuildMetadata) -> Metadata:
        if not self._rebuild:
            try:
                stored = self._store.read(key)
            except (OSError, ValueError) as e:
                logger.warning("Stored metadata %s is unreadable, rebuilding: %s", key, e)
                stored = None
            if stored is not None:
                logger.debug("Metadata %s loaded from store", key)
                self._values[key] = stored
                return stored

        logger.info("Building metadata %s", key)
        value = await build()

        try:
            self._store.write(key, value)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not persist metadata %s: %s", key, e)

        self._values[key] = value
        return value
