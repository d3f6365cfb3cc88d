"""Which adapter classes serve each protocol on each chain.

Order matters: when two products list the same protocol token, the first
one registered claims it for underlying expansion.
"""
from __future__ import annotations

from ..chains import Chain
from . import Protocol
from .iziswap import IZiSwapAdapter
from .lido import LidoStEthAdapter, LidoWstEthAdapter
from .mendi_finance import MendiFinanceBorrowAdapter, MendiFinanceSupplyAdapter

SUPPORTED_PROTOCOLS = {
    Protocol.LIDO: {
        Chain.ETHEREUM: [LidoStEthAdapter, LidoWstEthAdapter],
    },
    Protocol.MENDI_FINANCE: {
        Chain.LINEA: [MendiFinanceSupplyAdapter, MendiFinanceBorrowAdapter],
    },
    Protocol.IZISWAP: {
        Chain.BSC: [IZiSwapAdapter],
        Chain.BASE: [IZiSwapAdapter],
        Chain.ARBITRUM: [IZiSwapAdapter],
        Chain.LINEA: [IZiSwapAdapter],
    },
}
