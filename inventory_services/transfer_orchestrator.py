"""
inventory_services.transfer_orchestrator -- transfer lifecycle execution.

Responsibility:
    Creates transfers and drives them through TRANSFER_WORKFLOW.  Each
    transition's stock movements run as a saga through the Stock
    Adjustment Service; the status is written only after every step has
    succeeded.

Architecture position:
    Services layer.  Flush-only: InventoryService owns commit/rollback.

Invariants enforced:
    - Requesting the current status is a no-op: same record, no entries.
    - Nothing leaves completed or cancelled.
    - Stock moves only through StockAdjustmentService, tagged with the
      transfer id, so every transfer's ledger trail is queryable.
    - Both stock records of a two-sided transition are locked up front in
      stable order.

Failure modes:
    - ValidationError / InvalidQuantityError on bad input.
    - TransferNotFoundError for an unknown id.
    - InvalidStateTransitionError for transitions the workflow lacks.
    - InsufficientStockError when the source cannot cover the quantity.
    - TransferFailedError / CompensationFailedError from the saga.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import StockMutation, StockMutationMeta, TransferRecordDTO
from inventory_kernel.domain.validation import require_quantity, require_text, require_uuid
from inventory_kernel.exceptions import (
    InvalidStateTransitionError,
    TransferNotFoundError,
    ValidationError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.transfer import TransferRecord, TransferStatus
from inventory_kernel.services.stock_adjustment_service import StockAdjustmentService
from inventory_services.saga import SagaExecutor, SagaStep
from inventory_services.transfer_workflow import (
    INITIAL_STATUSES,
    TRANSFER_SAGAS,
    TRANSFER_WORKFLOW,
    Direction,
    Side,
    StockMove,
    TransferStepSpec,
)

logger = get_logger("services.transfer_orchestrator")


def parse_status(value: TransferStatus | str) -> TransferStatus:
    """Coerce a status string; unknown values are a ValidationError."""
    try:
        return TransferStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in TransferStatus)
        raise ValidationError(
            f"Unknown transfer status {value!r}; expected one of: {allowed}",
            field="status",
        ) from None


def cancellation_notes(reason: str, existing: str | None) -> str:
    notes = f"Cancelled. Reason: {reason}"
    if existing:
        notes += f"\nOriginal notes: {existing}"
    return notes


class TransferOrchestrator:
    """
    Create, advance and cancel transfers.

    Contract:
        Every public method returns a TransferRecordDTO snapshot.
    """

    def __init__(
        self,
        session: Session,
        adjustments: StockAdjustmentService,
        clock: Clock | None = None,
    ):
        self._session = session
        self._adjustments = adjustments
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def create_transfer(
        self,
        source_location_id: UUID,
        dest_location_id: UUID,
        variant_id: UUID,
        quantity: int,
        actor_id: UUID,
        notes: str | None = None,
        initial_status: TransferStatus | str = TransferStatus.COMPLETED,
    ) -> TransferRecordDTO:
        """
        Record a transfer and bring it to ``initial_status``.

        The source pair is locked and checked before anything is written,
        so a transfer beyond available stock is rejected whatever the
        initial status.  The record is then inserted as pending;
        in_transit or completed runs the matching saga.
        """
        source_location_id = require_uuid(source_location_id, "source_location_id")
        dest_location_id = require_uuid(dest_location_id, "dest_location_id")
        variant_id = require_uuid(variant_id, "variant_id")
        actor_id = require_uuid(actor_id, "actor_id")
        quantity = require_quantity(quantity)
        target = parse_status(initial_status)

        if source_location_id == dest_location_id:
            raise ValidationError(
                "Source and destination locations must differ",
                field="dest_location_id",
            )
        if target not in INITIAL_STATUSES:
            raise ValidationError(
                f"A transfer cannot be created as {target.value}",
                field="initial_status",
            )

        # Checked for every initial status, pending included
        self._adjustments.require_available(variant_id, source_location_id, quantity)

        now = self._clock.now()
        record = TransferRecord(
            source_location_id=source_location_id,
            dest_location_id=dest_location_id,
            variant_id=variant_id,
            quantity=quantity,
            status=TransferStatus.PENDING.value,
            actor_id=actor_id,
            notes=notes,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self._session.add(record)
        self._session.flush()

        with LogContext.bind(transfer_id=record.id):
            logger.info(
                "transfer_created",
                extra={
                    "variant_id": variant_id,
                    "source_location_id": source_location_id,
                    "dest_location_id": dest_location_id,
                    "quantity": quantity,
                    "initial_status": target.value,
                },
            )
            if target is not TransferStatus.PENDING:
                self._transition(record, target, actor_id)

        return TransferRecordDTO.from_model(record)

    def update_status(
        self,
        transfer_id: UUID,
        new_status: TransferStatus | str,
        actor_id: UUID,
        notes: str | None = None,
    ) -> TransferRecordDTO:
        """Move a transfer to ``new_status``; notes, when given, replace the old ones."""
        transfer_id = require_uuid(transfer_id, "transfer_id")
        actor_id = require_uuid(actor_id, "actor_id")
        target = parse_status(new_status)

        record = self._lock_transfer(transfer_id)
        with LogContext.bind(transfer_id=transfer_id):
            if TransferStatus(record.status) is target:
                logger.info("transfer_status_unchanged", extra={"status": target.value})
                return TransferRecordDTO.from_model(record)
            self._transition(record, target, actor_id, notes=notes)
        return TransferRecordDTO.from_model(record)

    def cancel(self, transfer_id: UUID, actor_id: UUID, reason: str) -> TransferRecordDTO:
        """
        Cancel an open transfer, returning in-transit stock to the source.

        Cancelling an already cancelled transfer is an
        InvalidStateTransitionError, unlike update_status(..., cancelled).
        """
        transfer_id = require_uuid(transfer_id, "transfer_id")
        actor_id = require_uuid(actor_id, "actor_id")
        reason = require_text(reason, "reason")

        record = self._lock_transfer(transfer_id)
        current = TransferStatus(record.status)
        if current.is_terminal:
            raise InvalidStateTransitionError(
                str(transfer_id), current.value, TransferStatus.CANCELLED.value
            )

        with LogContext.bind(transfer_id=transfer_id):
            self._transition(
                record,
                TransferStatus.CANCELLED,
                actor_id,
                notes=cancellation_notes(reason, record.notes),
            )
        return TransferRecordDTO.from_model(record)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_transfer(self, transfer_id: UUID) -> TransferRecord:
        record = self._session.execute(
            select(TransferRecord)
            .where(TransferRecord.id == transfer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise TransferNotFoundError(str(transfer_id))
        return record

    def _transition(
        self,
        record: TransferRecord,
        target: TransferStatus,
        actor_id: UUID,
        notes: str | None = None,
    ) -> None:
        current = TransferStatus(record.status)
        if current.is_terminal:
            raise InvalidStateTransitionError(str(record.id), current.value, target.value)
        transition = TRANSFER_WORKFLOW.find_transition(current.value, target.value)
        if transition is None:
            raise InvalidStateTransitionError(str(record.id), current.value, target.value)

        specs = TRANSFER_SAGAS[transition.action]
        if len(specs) > 1:
            self._adjustments.lock_pairs(
                (record.variant_id, self._location(record, spec.move.side)) for spec in specs
            )

        steps = [self._build_step(record, spec, actor_id) for spec in specs]
        SagaExecutor(self._session, transition.action, record.id).run(steps)

        record.status = target.value
        if notes is not None:
            record.notes = notes
        record.updated_at = self._clock.now()
        record.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "transfer_status_changed",
            extra={
                "action": transition.action,
                "from_status": current.value,
                "to_status": target.value,
                "quantity": record.quantity,
            },
        )

    @staticmethod
    def _location(record: TransferRecord, side: Side) -> UUID:
        return record.source_location_id if side is Side.SOURCE else record.dest_location_id

    def _apply(
        self,
        record: TransferRecord,
        move: StockMove,
        actor_id: UUID,
        note: str,
    ) -> StockMutation:
        apply = (
            self._adjustments.credit
            if move.direction is Direction.CREDIT
            else self._adjustments.debit
        )
        return apply(
            record.variant_id,
            self._location(record, move.side),
            record.quantity,
            actor_id,
            move.entry_type,
            note=note,
            meta=StockMutationMeta(related_transfer_id=record.id),
        )

    def _build_step(
        self,
        record: TransferRecord,
        spec: TransferStepSpec,
        actor_id: UUID,
    ) -> SagaStep:
        # Bound now; the record's attributes may be expired after a savepoint rollback
        transfer_id = record.id

        def action() -> StockMutation:
            return self._apply(record, spec.move, actor_id, f"Transfer {transfer_id}: {spec.name}")

        compensation = None
        if spec.compensation is not None:
            undo = spec.compensation

            def compensation(_result: StockMutation) -> StockMutation:
                return self._apply(
                    record,
                    undo,
                    actor_id,
                    f"Transfer {transfer_id}: compensating {spec.name}",
                )

        return SagaStep(name=spec.name, action=action, compensation=compensation)
