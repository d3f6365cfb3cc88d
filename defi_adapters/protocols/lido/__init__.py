"""Lido liquid staking adapters."""
from .st_eth import LidoStEthAdapter
from .wst_eth import LidoWstEthAdapter

__all__ = ["LidoStEthAdapter", "LidoWstEthAdapter"]
