#!/usr/bin/env python3
"""
DeFi position adapters
Entry point: python -m defi_adapters.main <command> ...
"""
from .cli import main

if __name__ == "__main__":
    main()
