"""Pure domain types for the inventory kernel."""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    LedgerDiscrepancy,
    LedgerEntryRecord,
    ReceivingLine,
    StockLevel,
    StockMutation,
    StockMutationMeta,
    TransferRecordDTO,
)
from inventory_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Guard",
    "Transition",
    "Workflow",
    "StockMutationMeta",
    "StockMutation",
    "StockLevel",
    "LedgerEntryRecord",
    "TransferRecordDTO",
    "ReceivingLine",
    "LedgerDiscrepancy",
]
