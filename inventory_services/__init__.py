"""
Services layer: the InventoryService facade and the orchestration it
composes (transfer workflow and saga, purchase receipts at landed cost).
"""

from inventory_services.cost_accounting_service import (
    CostAccountingService,
    PreviewLine,
    ReceiptPreview,
    ReceivedLine,
    ReceivingResult,
)
from inventory_services.inventory_service import AdjustmentAction, InventoryService
from inventory_services.references import (
    AcceptAllReferences,
    ReferenceDirectory,
    StaticReferenceDirectory,
)
from inventory_services.saga import SagaExecutor, SagaStep
from inventory_services.transfer_orchestrator import TransferOrchestrator
from inventory_services.transfer_workflow import TRANSFER_SAGAS, TRANSFER_WORKFLOW

__all__ = [
    "AcceptAllReferences",
    "AdjustmentAction",
    "CostAccountingService",
    "InventoryService",
    "PreviewLine",
    "ReceiptPreview",
    "ReceivedLine",
    "ReceivingResult",
    "ReferenceDirectory",
    "SagaExecutor",
    "SagaStep",
    "StaticReferenceDirectory",
    "TRANSFER_SAGAS",
    "TRANSFER_WORKFLOW",
    "TransferOrchestrator",
]
