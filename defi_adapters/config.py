"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .chains import Chain

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30


@dataclass(frozen=True)
class MetadataConfig:
    directory: str = "metadata"
    rebuild: bool = False


@dataclass(frozen=True)
class AppConfig:
    chains: dict[Chain, ChainConfig] = field(default_factory=dict)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_chains(raw: dict[str, Any]) -> dict[Chain, ChainConfig]:
    chains: dict[Chain, ChainConfig] = {}
    for name, cfg in raw.items():
        chain = Chain.from_name(str(name))
        cfg = cfg or {}
        # Unset env vars interpolate to "", drop them rather than dialling "".
        endpoints = tuple(e for e in cfg.get("rpc_endpoints", []) if e)
        chains[chain] = ChainConfig(
            rpc_endpoints=endpoints,
            rpc_timeout=int(cfg.get("rpc_timeout", 30)),
        )
    return chains


def _build_metadata(raw: dict[str, Any]) -> MetadataConfig:
    return MetadataConfig(
        directory=str(raw.get("directory", "metadata")),
        rebuild=bool(raw.get("rebuild", False)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        chains=_build_chains(raw.get("chains") or {}),
        metadata=_build_metadata(raw.get("metadata") or {}),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.chains:
        raise ValueError("At least one chain must be configured")

    for chain, chain_cfg in cfg.chains.items():
        if not chain_cfg.rpc_endpoints:
            raise ValueError(f"Chain '{chain.slug}' has no RPC endpoints")
        if chain_cfg.rpc_timeout <= 0:
            raise ValueError(f"Chain '{chain.slug}' has a non-positive rpc_timeout")
