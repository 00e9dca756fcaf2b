"""Domain models for the inventory kernel."""

from inventory_kernel.models.ledger_entry import LedgerEntry, LedgerEntryType
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.models.transfer import (
    TRANSFER_FROZEN_FIELDS,
    TransferRecord,
    TransferStatus,
)

__all__ = [
    "StockRecord",
    "LedgerEntry",
    "LedgerEntryType",
    "TransferRecord",
    "TransferStatus",
    "TRANSFER_FROZEN_FIELDS",
]
