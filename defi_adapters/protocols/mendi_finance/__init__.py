"""Mendi Finance lending adapters (Linea)."""
from .borrow import MendiFinanceBorrowAdapter
from .supply import MendiFinanceSupplyAdapter

__all__ = ["MendiFinanceBorrowAdapter", "MendiFinanceSupplyAdapter"]
