"""
StockAdjustmentService -- the only writer of stock records.

Responsibility:
    Applies credits, debits and absolute "set" adjustments to the
    per-(variant, location) StockRecord and appends exactly one immutable
    LedgerEntry per change, in the same flush.  Receipt credits also roll
    the landed cost into the record's weighted-average cost.

Architecture position:
    Kernel > Services.  Called by the Cost Accounting service, the
    Transfer Orchestrator and the InventoryService facade.  Never commits.

Invariants enforced:
    - quantity never goes below zero; a debit larger than the available
      quantity raises InsufficientStockError and changes nothing.
    - quantity == sum(delta) of the record's ledger entries.
    - average_cost == cumulative_cost_amount / cumulative_received_qty
      (quantized to cost_decimal_places); only receipts move it.
    - Ledger sequence increases by one per entry of a stock record.
    - Same-pair writers serialize on SELECT ... FOR UPDATE; multi-record
      callers lock through lock_pairs() in (location, variant) order.

Failure modes:
    - InvalidQuantityError / ValidationError for bad input, before any lock.
    - InsufficientStockError on over-debit.
    - IntegrityError on a create race is absorbed: the savepoint is rolled
      back and the winner's row is locked instead.

Audit relevance:
    Each mutation logs ``stock_credited`` / ``stock_debited`` /
    ``stock_set`` with the resulting quantity and ledger sequence.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.db.types import COST_DECIMAL_PLACES, round_cost
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import (
    LedgerEntryRecord,
    StockLevel,
    StockMutation,
    StockMutationMeta,
)
from inventory_kernel.domain.validation import (
    require_amount,
    require_quantity,
    require_uuid,
)
from inventory_kernel.exceptions import InsufficientStockError, ValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.ledger_entry import LedgerEntry, LedgerEntryType
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.services.base import BaseService

logger = get_logger("services.stock_adjustment")

CREDIT_TYPES = frozenset({
    LedgerEntryType.RECEIPT,
    LedgerEntryType.ADJUSTMENT_ADD,
    LedgerEntryType.TRANSFER_IN,
    LedgerEntryType.TRANSFER_CANCEL,
})

DEBIT_TYPES = frozenset({
    LedgerEntryType.SALE,
    LedgerEntryType.ADJUSTMENT_REDUCE,
    LedgerEntryType.TRANSFER_OUT,
})


def _entry_type(
    value: LedgerEntryType | str,
    allowed: frozenset[LedgerEntryType],
    side: str,
) -> LedgerEntryType:
    try:
        entry_type = LedgerEntryType(value)
    except ValueError:
        raise ValidationError(f"Unknown ledger entry type: {value!r}", field="entry_type") from None
    if entry_type not in allowed:
        raise ValidationError(
            f"Entry type '{entry_type.value}' cannot be used for a {side}",
            field="entry_type",
        )
    return entry_type


class StockAdjustmentService(BaseService[StockRecord]):
    """
    Credit / debit / set on stock records with a ledger entry per change.

    Contract:
        Every public mutation returns a StockMutation snapshot of the record
        after the change and of the entry that describes it.  The entry type
        is always supplied by the caller.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT check whether variants or locations exist; that is the
          InventoryService's reference directory.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        cost_decimal_places: int = COST_DECIMAL_PLACES,
        default_reorder_threshold: int = 5,
    ):
        super().__init__(session, clock)
        self._cost_places = cost_decimal_places
        self._default_threshold = default_reorder_threshold

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def _select_for_update(self, variant_id: UUID, location_id: UUID) -> StockRecord | None:
        return self.session.execute(
            select(StockRecord)
            .where(
                StockRecord.variant_id == variant_id,
                StockRecord.location_id == location_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_or_create(self, variant_id: UUID, location_id: UUID, actor_id: UUID) -> StockRecord:
        record = self._select_for_update(variant_id, location_id)
        if record is not None:
            return record

        # First mutation for this pair.  A concurrent writer may insert the
        # same pair; the savepoint keeps the rest of the transaction intact.
        now = self.clock.now()
        savepoint = self.session.begin_nested()
        try:
            record = StockRecord(
                variant_id=variant_id,
                location_id=location_id,
                quantity=0,
                reorder_threshold=self._default_threshold,
                average_cost=Decimal("0"),
                cumulative_received_qty=0,
                cumulative_cost_amount=Decimal("0"),
                version=0,
                last_sequence=0,
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
            )
            self.session.add(record)
            self.session.flush()
            savepoint.commit()
            logger.debug(
                "stock_record_created",
                extra={"variant_id": variant_id, "location_id": location_id},
            )
            return record
        except IntegrityError:
            logger.debug(
                "stock_record_create_race_retry",
                extra={"variant_id": variant_id, "location_id": location_id},
            )
            savepoint.rollback()
            self.session.expire_all()
            record = self._select_for_update(variant_id, location_id)
            if record is None:
                raise
            return record

    def lock_pairs(self, pairs: Iterable[tuple[UUID, UUID]]) -> dict[tuple[UUID, UUID], StockRecord]:
        """
        Lock the existing records for several (variant, location) pairs.

        Locks are taken in (location_id, variant_id) order so two
        transactions touching the same records cannot deadlock.  Pairs
        without a record are skipped; they are created on first credit.
        """
        locked: dict[tuple[UUID, UUID], StockRecord] = {}
        for variant_id, location_id in sorted(set(pairs), key=lambda p: (str(p[1]), str(p[0]))):
            record = self._select_for_update(variant_id, location_id)
            if record is not None:
                locked[(variant_id, location_id)] = record
        return locked

    def _lock_available(self, variant_id: UUID, location_id: UUID, quantity: int) -> StockRecord | None:
        record = self._select_for_update(variant_id, location_id)
        available = record.quantity if record is not None else 0
        if quantity > available:
            logger.warning(
                "stock_debit_rejected",
                extra={
                    "variant_id": variant_id,
                    "location_id": location_id,
                    "requested": quantity,
                    "available": available,
                },
            )
            raise InsufficientStockError(
                variant_id=str(variant_id),
                location_id=str(location_id),
                requested=quantity,
                available=available,
            )
        return record

    def require_available(self, variant_id: UUID, location_id: UUID, quantity: int) -> int:
        """
        Lock the pair and check it holds at least ``quantity`` units.

        Returns the quantity on hand.  Nothing is written; a missing record
        counts as zero and is not created.

        Raises:
            InsufficientStockError: quantity exceeds what is on hand.
        """
        variant_id = require_uuid(variant_id, "variant_id")
        location_id = require_uuid(location_id, "location_id")
        quantity = require_quantity(quantity)
        record = self._lock_available(variant_id, location_id, quantity)
        return record.quantity if record is not None else 0

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def _append_entry(
        self,
        record: StockRecord,
        delta: int,
        entry_type: LedgerEntryType,
        actor_id: UUID,
        note: str | None,
        meta: StockMutationMeta | None,
        unit_cost: Decimal | None = None,
    ) -> StockMutation:
        now = self.clock.now()
        record.quantity += delta
        record.version += 1
        record.last_sequence += 1
        record.updated_at = now
        record.updated_by_id = actor_id

        entry = LedgerEntry(
            stock_record_id=record.id,
            variant_id=record.variant_id,
            location_id=record.location_id,
            delta=delta,
            resulting_quantity=record.quantity,
            entry_type=entry_type.value,
            actor_id=actor_id,
            note=note,
            related_transfer_id=meta.related_transfer_id if meta else None,
            related_receiving_id=meta.related_receiving_id if meta else None,
            unit_cost=unit_cost,
            created_at=now,
            sequence=record.last_sequence,
        )
        self.session.add(entry)
        self.session.flush()

        return StockMutation(
            stock_record=StockLevel.from_model(record),
            ledger_entry=LedgerEntryRecord.from_model(entry),
        )

    @staticmethod
    def _receipt_total(quantity: int, meta: StockMutationMeta | None) -> Decimal:
        if meta is None or (meta.landed_cost_total is None and meta.unit_cost is None):
            raise ValidationError(
                "A receipt requires unit_cost or landed_cost_total", field="meta"
            )
        if meta.landed_cost_total is not None:
            return require_amount(meta.landed_cost_total, "landed_cost_total")
        return require_amount(meta.unit_cost, "unit_cost") * quantity

    def _apply_receipt_cost(self, record: StockRecord, quantity: int, total: Decimal) -> Decimal:
        """Roll a receipt's landed cost into the weighted average.

        Returns the landed cost per unit recorded on the ledger entry.
        """
        record.cumulative_received_qty += quantity
        record.cumulative_cost_amount = Decimal(record.cumulative_cost_amount) + total
        record.average_cost = round_cost(
            Decimal(record.cumulative_cost_amount) / record.cumulative_received_qty,
            self._cost_places,
        )
        return round_cost(total / quantity, self._cost_places)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def credit(
        self,
        variant_id: UUID,
        location_id: UUID,
        quantity: int,
        actor_id: UUID,
        entry_type: LedgerEntryType | str,
        note: str | None = None,
        meta: StockMutationMeta | None = None,
    ) -> StockMutation:
        """
        Add ``quantity`` units, creating the stock record if needed.

        Preconditions:
            quantity > 0; entry_type is receipt, adjustment-add,
            transfer-in or transfer-cancel; receipts carry a cost in meta.
        Postconditions:
            quantity increased by exactly ``quantity``; one ledger entry.
        """
        variant_id = require_uuid(variant_id, "variant_id")
        location_id = require_uuid(location_id, "location_id")
        actor_id = require_uuid(actor_id, "actor_id")
        quantity = require_quantity(quantity)
        kind = _entry_type(entry_type, CREDIT_TYPES, "credit")
        receipt_total = (
            self._receipt_total(quantity, meta) if kind is LedgerEntryType.RECEIPT else None
        )

        record = self._lock_or_create(variant_id, location_id, actor_id)

        unit_cost = None
        if receipt_total is not None:
            unit_cost = self._apply_receipt_cost(record, quantity, receipt_total)

        mutation = self._append_entry(record, quantity, kind, actor_id, note, meta, unit_cost)

        logger.info(
            "stock_credited",
            extra={
                "variant_id": variant_id,
                "location_id": location_id,
                "quantity": quantity,
                "entry_type": kind.value,
                "resulting_quantity": mutation.stock_record.quantity,
                "sequence": mutation.ledger_entry.sequence,
            },
        )
        return mutation

    def debit(
        self,
        variant_id: UUID,
        location_id: UUID,
        quantity: int,
        actor_id: UUID,
        entry_type: LedgerEntryType | str,
        note: str | None = None,
        meta: StockMutationMeta | None = None,
    ) -> StockMutation:
        """
        Remove ``quantity`` units.

        Raises:
            InsufficientStockError: quantity exceeds what is on hand.  A
                missing record counts as zero and is not created.
        """
        variant_id = require_uuid(variant_id, "variant_id")
        location_id = require_uuid(location_id, "location_id")
        actor_id = require_uuid(actor_id, "actor_id")
        quantity = require_quantity(quantity)
        kind = _entry_type(entry_type, DEBIT_TYPES, "debit")

        record = self._lock_available(variant_id, location_id, quantity)
        mutation = self._append_entry(record, -quantity, kind, actor_id, note, meta)

        logger.info(
            "stock_debited",
            extra={
                "variant_id": variant_id,
                "location_id": location_id,
                "quantity": quantity,
                "entry_type": kind.value,
                "resulting_quantity": mutation.stock_record.quantity,
                "sequence": mutation.ledger_entry.sequence,
            },
        )
        return mutation

    def set_quantity(
        self,
        variant_id: UUID,
        location_id: UUID,
        target_quantity: int,
        actor_id: UUID,
        note: str | None = None,
        meta: StockMutationMeta | None = None,
    ) -> StockMutation:
        """
        Set the absolute quantity (stock count correction).

        Records adjustment-add for a delta >= 0 (including zero, so every
        count leaves a trace) and adjustment-reduce below that.  Cost
        fields are untouched.
        """
        variant_id = require_uuid(variant_id, "variant_id")
        location_id = require_uuid(location_id, "location_id")
        actor_id = require_uuid(actor_id, "actor_id")
        target_quantity = require_quantity(target_quantity, allow_zero=True)

        record = self._lock_or_create(variant_id, location_id, actor_id)
        delta = target_quantity - record.quantity
        kind = LedgerEntryType.ADJUSTMENT_ADD if delta >= 0 else LedgerEntryType.ADJUSTMENT_REDUCE

        mutation = self._append_entry(record, delta, kind, actor_id, note, meta)

        logger.info(
            "stock_set",
            extra={
                "variant_id": variant_id,
                "location_id": location_id,
                "delta": delta,
                "resulting_quantity": target_quantity,
                "sequence": mutation.ledger_entry.sequence,
            },
        )
        return mutation

    def set_reorder_threshold(
        self,
        variant_id: UUID,
        location_id: UUID,
        threshold: int,
        actor_id: UUID,
    ) -> StockLevel:
        """Change the low-stock threshold; no ledger entry (quantity unchanged)."""
        variant_id = require_uuid(variant_id, "variant_id")
        location_id = require_uuid(location_id, "location_id")
        actor_id = require_uuid(actor_id, "actor_id")
        threshold = require_quantity(threshold, allow_zero=True)

        record = self._lock_or_create(variant_id, location_id, actor_id)
        record.reorder_threshold = threshold
        record.updated_at = self.clock.now()
        record.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "reorder_threshold_set",
            extra={
                "variant_id": variant_id,
                "location_id": location_id,
                "threshold": threshold,
            },
        )
        return StockLevel.from_model(record)
