"""iZiSwap liquidity adapters."""
from .adapter import IZiSwapAdapter

__all__ = ["IZiSwapAdapter"]
