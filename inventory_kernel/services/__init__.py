"""Kernel write services (flush-only)."""

from inventory_kernel.services.base import BaseService
from inventory_kernel.services.stock_adjustment_service import (
    CREDIT_TYPES,
    DEBIT_TYPES,
    StockAdjustmentService,
)

__all__ = [
    "BaseService",
    "StockAdjustmentService",
    "CREDIT_TYPES",
    "DEBIT_TYPES",
]
