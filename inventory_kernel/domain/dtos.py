"""
DTOs -- immutable data structures returned across the kernel boundary.

Responsibility:
    Read-side snapshots of stock records, ledger entries and transfers, the
    typed metadata attached to stock mutations, and the input line of a
    purchase receipt.

Architecture position:
    Kernel > Domain.  No database access.  from_model() class methods are
    boundary converters called by services and selectors only.

Invariants enforced:
    - Services and the InventoryService facade return these DTOs, never
      live ORM instances, so callers cannot mutate persisted state.
    - StockMutationMeta replaces free-form metadata maps.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from inventory_kernel.models.ledger_entry import LedgerEntryType
from inventory_kernel.models.transfer import TransferStatus

if TYPE_CHECKING:
    from inventory_kernel.models.ledger_entry import LedgerEntry as LedgerEntryModel
    from inventory_kernel.models.stock_record import StockRecord as StockRecordModel
    from inventory_kernel.models.transfer import TransferRecord as TransferRecordModel


@dataclass(frozen=True)
class StockMutationMeta:
    """
    Typed metadata carried onto a ledger entry.

    unit_cost / landed_cost_total only matter for receipts: the receipt adds
    landed_cost_total (or unit_cost * quantity when no total is given) to
    the stock record's cost basis.
    """

    related_transfer_id: UUID | None = None
    related_receiving_id: UUID | None = None
    unit_cost: Decimal | None = None
    landed_cost_total: Decimal | None = None


@dataclass(frozen=True)
class StockLevel:
    """Snapshot of a StockRecord."""

    id: UUID
    variant_id: UUID
    location_id: UUID
    quantity: int
    reorder_threshold: int
    average_cost: Decimal
    cumulative_received_qty: int
    cumulative_cost_amount: Decimal
    version: int
    updated_at: datetime | None = None

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.reorder_threshold

    @classmethod
    def from_model(cls, model: StockRecordModel) -> StockLevel:
        return cls(
            id=model.id,
            variant_id=model.variant_id,
            location_id=model.location_id,
            quantity=model.quantity,
            reorder_threshold=model.reorder_threshold,
            average_cost=Decimal(model.average_cost),
            cumulative_received_qty=model.cumulative_received_qty,
            cumulative_cost_amount=Decimal(model.cumulative_cost_amount),
            version=model.version,
            updated_at=model.updated_at,
        )


@dataclass(frozen=True)
class LedgerEntryRecord:
    """Snapshot of one immutable ledger entry."""

    id: UUID
    stock_record_id: UUID
    variant_id: UUID
    location_id: UUID
    delta: int
    resulting_quantity: int
    entry_type: LedgerEntryType
    actor_id: UUID
    sequence: int
    created_at: datetime
    note: str | None = None
    related_transfer_id: UUID | None = None
    related_receiving_id: UUID | None = None
    unit_cost: Decimal | None = None

    @classmethod
    def from_model(cls, model: LedgerEntryModel) -> LedgerEntryRecord:
        return cls(
            id=model.id,
            stock_record_id=model.stock_record_id,
            variant_id=model.variant_id,
            location_id=model.location_id,
            delta=model.delta,
            resulting_quantity=model.resulting_quantity,
            entry_type=LedgerEntryType(model.entry_type),
            actor_id=model.actor_id,
            sequence=model.sequence,
            created_at=model.created_at,
            note=model.note,
            related_transfer_id=model.related_transfer_id,
            related_receiving_id=model.related_receiving_id,
            unit_cost=Decimal(model.unit_cost) if model.unit_cost is not None else None,
        )


@dataclass(frozen=True)
class StockMutation:
    """Result of one Stock Adjustment Service call: the record after the
    change and the ledger entry that describes it."""

    stock_record: StockLevel
    ledger_entry: LedgerEntryRecord


@dataclass(frozen=True)
class TransferRecordDTO:
    """Snapshot of a transfer."""

    id: UUID
    source_location_id: UUID
    dest_location_id: UUID
    variant_id: UUID
    quantity: int
    status: TransferStatus
    actor_id: UUID
    notes: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_model(cls, model: TransferRecordModel) -> TransferRecordDTO:
        return cls(
            id=model.id,
            source_location_id=model.source_location_id,
            dest_location_id=model.dest_location_id,
            variant_id=model.variant_id,
            quantity=model.quantity,
            status=TransferStatus(model.status),
            actor_id=model.actor_id,
            notes=model.notes,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


@dataclass(frozen=True)
class ReceivingLine:
    """One line of a purchase receipt: quantity of a variant at a unit cost."""

    variant_id: UUID
    quantity: int
    unit_cost: Decimal


@dataclass(frozen=True)
class LedgerDiscrepancy:
    """A stock record whose stored totals disagree with its history.

    kind is ``quantity`` (quantity != sum of ledger deltas) or ``cost``
    (average_cost * cumulative_received_qty drifts from
    cumulative_cost_amount beyond tolerance).
    """

    stock_record_id: UUID
    variant_id: UUID
    location_id: UUID
    kind: str
    expected: Decimal
    actual: Decimal
