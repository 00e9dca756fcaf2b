"""Read-only query selectors."""

from inventory_kernel.selectors.ledger_selector import LedgerSelector, TransferEffect
from inventory_kernel.selectors.stock_selector import StockSelector
from inventory_kernel.selectors.transfer_selector import (
    TransferFilter,
    TransferPage,
    TransferSelector,
)

__all__ = [
    "LedgerSelector",
    "TransferEffect",
    "StockSelector",
    "TransferSelector",
    "TransferFilter",
    "TransferPage",
]
