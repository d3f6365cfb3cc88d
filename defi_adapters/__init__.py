"""DeFi position adapters for EVM chains."""

__version__ = "0.1.0"
