"""
Inventory Service (``inventory_services.inventory_service``).

Responsibility
--------------
The public surface of the inventory core.  Composes the Stock Adjustment
Service, the Transfer Orchestrator and the Cost Accounting service over
one session and owns the transaction of every operation.  It holds no
business rules of its own beyond the reference checks.

Architecture
------------
Layer: **Services** -- stateful orchestration wrapper.

1. Checks variant / location references through a ``ReferenceDirectory``.
2. Delegates the mutation to the kernel or services layer (flush-only).
3. Commits on success, rolls back on failure.

Invariants
----------
- Each public mutation owns its transaction boundary: ``commit()`` on
  success, ``rollback()`` on any exception before re-raising.
- Exception: when a status update fails with ``TransferFailedError`` and
  its compensation succeeded, the session is committed first, so the
  ledger keeps the attempt and its reversal.  A failed create and a
  ``CompensationFailedError`` are rolled back like any other error.
- Reads never commit.

Failure Modes
-------------
- ``ValidationError`` family for malformed input (before any write).
- ``VariantNotFoundError`` / ``LocationNotFoundError`` for ids the
  reference directory does not know.
- ``InsufficientStockError``, ``InvalidStateTransitionError``,
  ``TransferNotFoundError``, ``TransferFailedError`` from the layers below.

Usage::

    service = InventoryService(session, clock=clock)
    service.receive_purchase(
        location_id=warehouse_id,
        lines=[ReceivingLine(variant_id=sku_id, quantity=10, unit_cost=Decimal("100"))],
        total_freight=Decimal("50"),
        actor_id=actor_id,
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config import MAX_LIST_PAGE_LIMIT, InventoryConfig, get_active_config
from inventory_engines.landed_cost import AllocationBasis
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    LedgerDiscrepancy,
    LedgerEntryRecord,
    ReceivingLine,
    StockLevel,
    StockMutation,
    StockMutationMeta,
    TransferRecordDTO,
)
from inventory_kernel.domain.validation import require_quantity, require_uuid
from inventory_kernel.exceptions import (
    CompensationFailedError,
    LocationNotFoundError,
    TransferFailedError,
    TransferNotFoundError,
    ValidationError,
    VariantNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.ledger_entry import LedgerEntryType
from inventory_kernel.models.transfer import TransferStatus
from inventory_kernel.selectors.ledger_selector import LedgerSelector, TransferEffect
from inventory_kernel.selectors.stock_selector import StockSelector
from inventory_kernel.selectors.transfer_selector import (
    TransferFilter,
    TransferPage,
    TransferSelector,
)
from inventory_kernel.services.stock_adjustment_service import StockAdjustmentService
from inventory_services.cost_accounting_service import (
    CostAccountingService,
    ReceiptPreview,
    ReceivingResult,
)
from inventory_services.references import AcceptAllReferences, ReferenceDirectory
from inventory_services.transfer_orchestrator import TransferOrchestrator, parse_status

logger = get_logger("services.inventory")


class AdjustmentAction(str, Enum):
    ADD = "add"
    REDUCE = "reduce"
    SET = "set"


def _parse_action(value: AdjustmentAction | str) -> AdjustmentAction:
    try:
        return AdjustmentAction(value)
    except ValueError:
        raise ValidationError(
            f"Unknown adjustment action {value!r}; expected add, reduce or set",
            field="action",
        ) from None


class InventoryService:
    """
    Stock adjustments, transfers and purchase receipts over one session.

    Contract
    --------
    Every public mutation validates its input, delegates to the layer
    below, and commits.  Returned objects are frozen snapshots; callers
    never receive ORM instances.

    Non-goals
    ---------
    - Does NOT authorize callers; ``actor_id`` is trusted.
    - Does NOT compute cost or move stock itself.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: InventoryConfig | None = None,
        references: ReferenceDirectory | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._references = references or AcceptAllReferences()

        self._adjustments = StockAdjustmentService(
            session,
            self._clock,
            cost_decimal_places=self._config.cost_decimal_places,
            default_reorder_threshold=self._config.default_reorder_threshold,
        )
        self._transfers = TransferOrchestrator(session, self._adjustments, self._clock)
        self._costing = CostAccountingService(
            session,
            self._adjustments,
            currency_decimal_places=self._config.currency_decimal_places,
            cost_decimal_places=self._config.cost_decimal_places,
            basis=AllocationBasis(self._config.freight_allocation_basis.value),
        )

        self._stock = StockSelector(session)
        self._ledger = LedgerSelector(session)
        self._transfer_reads = TransferSelector(session)

    @property
    def config(self) -> InventoryConfig:
        return self._config

    # =========================================================================
    # Reference checks
    # =========================================================================

    def _check_variant(self, variant_id: UUID) -> UUID:
        variant_id = require_uuid(variant_id, "variant_id")
        if not self._references.variant_exists(variant_id):
            raise VariantNotFoundError(str(variant_id))
        return variant_id

    def _check_locations(self, *location_ids: UUID) -> tuple[UUID, ...]:
        checked = []
        for location_id in location_ids:
            location_id = require_uuid(location_id, "location_id")
            if not self._references.location_exists(location_id):
                raise LocationNotFoundError(str(location_id))
            checked.append(location_id)
        return tuple(checked)

    def _check_variants(self, variant_ids: Iterable[UUID]) -> None:
        for variant_id in variant_ids:
            self._check_variant(variant_id)

    # =========================================================================
    # Stock adjustments
    # =========================================================================

    def adjust_stock(
        self,
        variant_id: UUID,
        location_id: UUID,
        action: AdjustmentAction | str,
        quantity: int,
        actor_id: UUID,
        note: str | None = None,
        meta: StockMutationMeta | None = None,
    ) -> StockMutation:
        """
        Manual stock adjustment.

        ``add`` credits adjustment-add, ``reduce`` debits adjustment-reduce,
        ``set`` makes ``quantity`` the absolute on-hand count.

        Raises:
            InvalidQuantityError: quantity <= 0 (< 0 for ``set``).
            InsufficientStockError: ``reduce`` beyond what is on hand.
        """
        try:
            kind = _parse_action(action)
            variant_id = self._check_variant(variant_id)
            (location_id,) = self._check_locations(location_id)
            with LogContext.bind(actor_id=actor_id):
                if kind is AdjustmentAction.ADD:
                    mutation = self._adjustments.credit(
                        variant_id, location_id, quantity, actor_id,
                        LedgerEntryType.ADJUSTMENT_ADD, note=note, meta=meta,
                    )
                elif kind is AdjustmentAction.REDUCE:
                    mutation = self._adjustments.debit(
                        variant_id, location_id, quantity, actor_id,
                        LedgerEntryType.ADJUSTMENT_REDUCE, note=note, meta=meta,
                    )
                else:
                    mutation = self._adjustments.set_quantity(
                        variant_id, location_id, quantity, actor_id, note=note, meta=meta,
                    )
            self._session.commit()
            return mutation

        except Exception:
            self._session.rollback()
            raise

    def record_sale(
        self,
        variant_id: UUID,
        location_id: UUID,
        quantity: int,
        actor_id: UUID,
        note: str | None = None,
    ) -> StockMutation:
        """Debit sold units with a ``sale`` ledger entry."""
        try:
            variant_id = self._check_variant(variant_id)
            (location_id,) = self._check_locations(location_id)
            with LogContext.bind(actor_id=actor_id):
                mutation = self._adjustments.debit(
                    variant_id, location_id, quantity, actor_id,
                    LedgerEntryType.SALE, note=note,
                )
            self._session.commit()
            return mutation

        except Exception:
            self._session.rollback()
            raise

    def set_reorder_threshold(
        self,
        variant_id: UUID,
        location_id: UUID,
        threshold: int,
        actor_id: UUID,
    ) -> StockLevel:
        try:
            variant_id = self._check_variant(variant_id)
            (location_id,) = self._check_locations(location_id)
            with LogContext.bind(actor_id=actor_id):
                level = self._adjustments.set_reorder_threshold(
                    variant_id, location_id, threshold, actor_id
                )
            self._session.commit()
            return level

        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Transfers
    # =========================================================================

    def _commit_compensated(self, exc: TransferFailedError) -> None:
        """Keep the compensated trail of a failed multi-step transfer."""
        self._session.commit()
        logger.warning(
            "transfer_failed_compensation_committed",
            extra={
                "transfer_id": exc.transfer_id,
                "failed_step": exc.failed_step,
                "compensated_steps": list(exc.compensated_steps),
            },
        )

    def create_transfer(
        self,
        source_location_id: UUID,
        dest_location_id: UUID,
        variant_id: UUID,
        quantity: int,
        actor_id: UUID,
        notes: str | None = None,
        initial_status: TransferStatus | str | None = None,
    ) -> TransferRecordDTO:
        """
        Create a transfer, by default straight to the configured status
        (``completed`` unless configured otherwise).

        Raises:
            InsufficientStockError: the source cannot cover ``quantity``;
                nothing is persisted.
            TransferFailedError: a step of the creating saga failed; the
                transfer and its compensated entries are rolled back.
        """
        try:
            variant_id = self._check_variant(variant_id)
            source_location_id, dest_location_id = self._check_locations(
                source_location_id, dest_location_id
            )
            status = (
                initial_status
                if initial_status is not None
                else self._config.default_transfer_status
            )
            with LogContext.bind(actor_id=actor_id):
                transfer = self._transfers.create_transfer(
                    source_location_id,
                    dest_location_id,
                    variant_id,
                    quantity,
                    actor_id,
                    notes=notes,
                    initial_status=status,
                )
            self._session.commit()
            return transfer

        except Exception:
            # A failed creating saga leaves no transfer row, so no trail either
            self._session.rollback()
            raise

    def update_transfer_status(
        self,
        transfer_id: UUID,
        new_status: TransferStatus | str,
        actor_id: UUID,
        notes: str | None = None,
    ) -> TransferRecordDTO:
        """
        Advance a transfer.  Requesting the current status returns the
        transfer unchanged.
        """
        try:
            with LogContext.bind(actor_id=actor_id):
                transfer = self._transfers.update_status(
                    transfer_id, new_status, actor_id, notes=notes
                )
            self._session.commit()
            return transfer

        except CompensationFailedError:
            self._session.rollback()
            raise
        except TransferFailedError as exc:
            self._commit_compensated(exc)
            raise
        except Exception:
            self._session.rollback()
            raise

    def cancel_transfer(
        self,
        transfer_id: UUID,
        actor_id: UUID,
        reason: str,
    ) -> TransferRecordDTO:
        try:
            with LogContext.bind(actor_id=actor_id):
                transfer = self._transfers.cancel(transfer_id, actor_id, reason)
            self._session.commit()
            return transfer

        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Purchase receipts
    # =========================================================================

    def receive_purchase(
        self,
        location_id: UUID,
        lines: Sequence[ReceivingLine],
        total_freight: Decimal,
        actor_id: UUID,
        receiving_id: UUID | None = None,
        note: str | None = None,
    ) -> ReceivingResult:
        """
        Receive a purchase at landed cost.

        Freight is split over the lines (configured basis, currency
        rounding, remainder on the last line) and every line is credited
        as a receipt, moving the weighted-average cost.
        """
        try:
            (location_id,) = self._check_locations(location_id)
            self._check_variants(line.variant_id for line in lines)
            with LogContext.bind(actor_id=actor_id):
                result = self._costing.receive_purchase(
                    location_id,
                    lines,
                    total_freight,
                    actor_id,
                    receiving_id=receiving_id,
                    note=note,
                )
            self._session.commit()
            return result

        except Exception:
            self._session.rollback()
            raise

    def preview_receipt(
        self,
        location_id: UUID,
        lines: Sequence[ReceivingLine],
        total_freight: Decimal,
    ) -> ReceiptPreview:
        (location_id,) = self._check_locations(location_id)
        self._check_variants(line.variant_id for line in lines)
        return self._costing.preview_receipt(location_id, lines, total_freight)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_transfer(self, transfer_id: UUID) -> TransferRecordDTO:
        transfer_id = require_uuid(transfer_id, "transfer_id")
        transfer = self._transfer_reads.get(transfer_id)
        if transfer is None:
            raise TransferNotFoundError(str(transfer_id))
        return transfer

    def list_transfers(
        self,
        source_location_id: UUID | None = None,
        dest_location_id: UUID | None = None,
        status: TransferStatus | str | None = None,
        variant_id: UUID | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> TransferPage:
        """
        Transfers newest first.

        ``limit`` defaults to the configured page size and is capped at
        MAX_LIST_PAGE_LIMIT.
        """
        if limit is None:
            limit = self._config.list_page_limit
        limit = min(require_quantity(limit), MAX_LIST_PAGE_LIMIT)
        offset = require_quantity(offset, allow_zero=True)
        filters = TransferFilter(
            source_location_id=(
                require_uuid(source_location_id, "source_location_id")
                if source_location_id is not None else None
            ),
            dest_location_id=(
                require_uuid(dest_location_id, "dest_location_id")
                if dest_location_id is not None else None
            ),
            status=parse_status(status) if status is not None else None,
            variant_id=require_uuid(variant_id, "variant_id") if variant_id is not None else None,
            created_from=created_from,
            created_to=created_to,
        )
        return self._transfer_reads.list(filters, limit=limit, offset=offset)

    def get_stock(self, variant_id: UUID, location_id: UUID) -> StockLevel | None:
        return self._stock.get(
            require_uuid(variant_id, "variant_id"),
            require_uuid(location_id, "location_id"),
        )

    def list_low_stock(self, location_id: UUID | None = None) -> list[StockLevel]:
        if location_id is not None:
            location_id = require_uuid(location_id, "location_id")
        return self._stock.low_stock(location_id)

    def stock_history(
        self,
        variant_id: UUID,
        location_id: UUID,
        limit: int | None = None,
    ) -> list[LedgerEntryRecord]:
        if limit is not None:
            limit = require_quantity(limit)
        return self._ledger.history(
            require_uuid(variant_id, "variant_id"),
            require_uuid(location_id, "location_id"),
            limit=limit,
        )

    def transfer_ledger(self, transfer_id: UUID) -> TransferEffect:
        """Net stock effect of a transfer per location, from its ledger entries."""
        transfer_id = require_uuid(transfer_id, "transfer_id")
        if self._transfer_reads.get(transfer_id) is None:
            raise TransferNotFoundError(str(transfer_id))
        return self._ledger.net_transfer_effect(transfer_id)

    def verify_ledger_consistency(self) -> list[LedgerDiscrepancy]:
        discrepancies = self._ledger.verify_consistency(self._config.average_cost_tolerance)
        if discrepancies:
            logger.error(
                "ledger_inconsistency_detected",
                extra={"count": len(discrepancies)},
            )
        return discrepancies
