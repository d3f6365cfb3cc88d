"""Durable keyed JSON stores for protocol metadata."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class FileMetadataStore:
    """One JSON file per key under ``directory`` (``<key>.json``)."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> dict[str, Any] | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def write(self, key: str, value: dict[str, Any]) -> None:
        path = self.path_for(key)
        # Serialise first; a value that cannot be encoded leaves no file behind
        content = json.dumps(value, indent=2, sort_keys=True)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Readers see the old file or the new one, never a partial write
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(content + "\n", encoding="utf-8")
        os.replace(tmp_path, path)
        logger.debug("Wrote metadata %s", path)


class InMemoryMetadataStore:
    """Process-local store; values are kept as JSON text to mirror the file store."""

    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    def read(self, key: str) -> dict[str, Any] | None:
        blob = self._blobs.get(key)
        return None if blob is None else json.loads(blob)

    def write(self, key: str, value: dict[str, Any]) -> None:
        self._blobs[key] = json.dumps(value, sort_keys=True)
