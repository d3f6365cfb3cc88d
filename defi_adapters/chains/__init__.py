"""Chain enumeration and per-chain clients."""
from .chain import NATIVE_TOKENS, Chain

__all__ = ["Chain", "NATIVE_TOKENS"]
