"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The stock ledger is the audit trail of every quantity change.  A ledger row
that can be edited or deleted is not an audit trail.  Stock records carry
the running cost basis and must survive even at quantity zero.  A transfer
that has completed or been cancelled has already moved stock, so changing
its quantity or locations afterwards would desynchronize it from the ledger.

SQLAlchemy fires mapper events before UPDATE/DELETE statements are emitted.
The listeners below inspect attribute history and raise
ImmutabilityViolationError, which aborts the flush before any SQL runs:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule
----------------|------------------------------------------------------------
LedgerEntry     | No UPDATE, no DELETE, ever
StockRecord     | No DELETE (quantity may go to zero, the row stays)
TransferRecord  | Once completed/cancelled: status, quantity, variant and
                | locations are frozen; no DELETE.  notes and the audit
                | columns may still change.

Bulk statements (session.execute(update(...))) bypass mapper events.  The
services never issue them against these tables.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup; idempotent

Tests that need to tamper with rows on purpose:

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_ledger_entry_immutability(mapper, connection, target):
    """Ledger entries are immutable from creation."""
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.history.has_changes():
            _block(
                "LedgerEntry",
                target,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a ledger entry",
                field=attr.key,
            )


def _check_ledger_entry_delete(mapper, connection, target):
    _block("LedgerEntry", target, "DELETE", "Ledger entries cannot be deleted")


def _check_stock_record_delete(mapper, connection, target):
    _block(
        "StockRecord",
        target,
        "DELETE",
        "Stock records are never deleted; set the quantity to zero instead",
    )


def _was_terminal(target) -> bool:
    """
    True if the transfer was already terminal before this flush.

    A pending/in_transit -> completed/cancelled change is the transition
    itself and is allowed; anything after it is not.
    """
    from inventory_kernel.models.transfer import TransferStatus

    status_history = get_history(target, "status")
    if status_history.deleted:
        previous = status_history.deleted[0]
    elif not status_history.added:
        previous = target.status
    else:
        return False
    return TransferStatus(previous).is_terminal


def _check_transfer_immutability(mapper, connection, target):
    from inventory_kernel.models.transfer import TRANSFER_FROZEN_FIELDS

    if not _was_terminal(target):
        return

    insp = inspect(target)
    for key in TRANSFER_FROZEN_FIELDS:
        if insp.attrs[key].history.has_changes():
            _block(
                "TransferRecord",
                target,
                "UPDATE",
                f"Cannot modify field '{key}' on a {_status_label(target)} transfer",
                field=key,
            )


def _status_label(target) -> str:
    status_history = get_history(target, "status")
    if status_history.deleted:
        return str(getattr(status_history.deleted[0], "value", status_history.deleted[0]))
    return str(getattr(target.status, "value", target.status))


def _check_transfer_delete(mapper, connection, target):
    _block("TransferRecord", target, "DELETE", "Transfers cannot be deleted")


_LISTENERS: list[tuple[str, str, object]] = [
    ("LedgerEntry", "before_update", _check_ledger_entry_immutability),
    ("LedgerEntry", "before_delete", _check_ledger_entry_delete),
    ("StockRecord", "before_delete", _check_stock_record_delete),
    ("TransferRecord", "before_update", _check_transfer_immutability),
    ("TransferRecord", "before_delete", _check_transfer_delete),
]


def _models() -> dict[str, type]:
    from inventory_kernel.models import LedgerEntry, StockRecord, TransferRecord

    return {
        "LedgerEntry": LedgerEntry,
        "StockRecord": StockRecord,
        "TransferRecord": TransferRecord,
    }


def register_immutability_listeners() -> None:
    """
    Register all immutability event listeners.

    Call once after the models are importable and before any writes.
    Calling it again is harmless.
    """
    models = _models()
    for model_name, event_name, listener in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener):
            event.listen(target, event_name, listener)


def unregister_immutability_listeners() -> None:
    """
    Remove the immutability listeners.

    WARNING: tests only.
    """
    models = _models()
    for model_name, event_name, listener in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, listener):
            event.remove(target, event_name, listener)
