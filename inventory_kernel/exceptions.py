"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (an HTTP layer, a job runner, a CLI) must react to
failures precisely: a shortage is shown to the user, a broken state
transition is a conflict, a compensated transfer can be retried.  Parsing
message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.adjust_stock(variant_id, location_id, "reduce", 5, actor_id)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidAmountError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |
    +-- TransferError
    |   +-- InvalidStateTransitionError
    |   +-- TransferFailedError
    |       +-- CompensationFailedError
    |
    +-- NotFoundError
    |   +-- TransferNotFoundError
    |   +-- VariantNotFoundError
    |   +-- LocationNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|---------------------------------------
Validation   | VALIDATION_ERROR          | Malformed input
             | INVALID_QUANTITY          | Zero/negative/non-integer quantity
             | INVALID_AMOUNT            | Negative unit cost or freight
-------------|---------------------------|---------------------------------------
Stock        | INSUFFICIENT_STOCK        | Debit would drive quantity below zero
-------------|---------------------------|---------------------------------------
Transfer     | INVALID_STATE_TRANSITION  | Change away from a terminal status
             | TRANSFER_FAILED           | Later step failed, earlier compensated
             | COMPENSATION_FAILED       | A compensation step itself failed
-------------|---------------------------|---------------------------------------
Not found    | TRANSFER_NOT_FOUND        | Unknown transfer id
             | VARIANT_NOT_FOUND         | Reference directory rejects variant
             | LOCATION_NOT_FOUND        | Reference directory rejects location
-------------|---------------------------|---------------------------------------
Immutability | IMMUTABILITY_VIOLATION    | Update/delete of ledger rows, delete of
             |                           | stock records, edit of closed transfers

===============================================================================
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Validation exceptions


class ValidationError(InventoryKernelError):
    """Input failed validation before any mutation was attempted."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidQuantityError(ValidationError):
    """Quantity is not a positive integer (or negative where zero is allowed)."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, reason: str = "must be a positive integer"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity!r}: {reason}", field="quantity")


class InvalidAmountError(ValidationError):
    """Monetary amount (unit cost, freight) is invalid."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: object, reason: str = "cannot be negative"):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid {field} {amount!r}: {reason}", field=field)


# Stock exceptions


class StockError(InventoryKernelError):
    """Base exception for stock-level errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """A debit would drive the stock record below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        variant_id: str,
        location_id: str,
        requested: int,
        available: int,
    ):
        self.variant_id = variant_id
        self.location_id = location_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for variant {variant_id} at location "
            f"{location_id}: requested {requested}, available {available}"
        )


# Transfer exceptions


class TransferError(InventoryKernelError):
    """Base exception for transfer lifecycle errors."""

    code: str = "TRANSFER_ERROR"


class InvalidStateTransitionError(TransferError):
    """Requested transfer status change is not permitted."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, transfer_id: str, from_status: str, to_status: str):
        self.transfer_id = transfer_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Transfer {transfer_id} cannot move from {from_status} to {to_status}"
        )


class TransferFailedError(TransferError):
    """
    A multi-step transfer operation failed after partial application and
    was rolled back by its compensation steps.

    The transfer keeps its previous status; the caller may retry.
    """

    code: str = "TRANSFER_FAILED"

    def __init__(
        self,
        transfer_id: str,
        failed_step: str,
        compensated_steps: tuple[str, ...],
        cause: BaseException | None = None,
    ):
        self.transfer_id = transfer_id
        self.failed_step = failed_step
        self.compensated_steps = compensated_steps
        self.cause_code = getattr(cause, "code", type(cause).__name__ if cause else None)
        super().__init__(
            f"Transfer {transfer_id} failed at step '{failed_step}'; "
            f"compensated: {', '.join(compensated_steps) or 'nothing'}"
        )


class CompensationFailedError(TransferFailedError):
    """
    A compensation step raised while undoing a failed operation.

    The whole unit of work must be rolled back by the caller; nothing from
    the operation may be committed.
    """

    code: str = "COMPENSATION_FAILED"

    def __init__(
        self,
        transfer_id: str,
        failed_step: str,
        compensation_step: str,
        compensated_steps: tuple[str, ...] = (),
        cause: BaseException | None = None,
    ):
        self.compensation_step = compensation_step
        super().__init__(transfer_id, failed_step, compensated_steps, cause)
        self.args = (
            f"Transfer {transfer_id}: compensation '{compensation_step}' failed "
            f"while undoing step '{failed_step}'",
        )


# Not-found exceptions


class NotFoundError(InventoryKernelError):
    """Base exception for unknown references."""

    code: str = "NOT_FOUND"


class TransferNotFoundError(NotFoundError):
    """Transfer with given ID was not found."""

    code: str = "TRANSFER_NOT_FOUND"

    def __init__(self, transfer_id: str):
        self.transfer_id = transfer_id
        super().__init__(f"Transfer not found: {transfer_id}")


class VariantNotFoundError(NotFoundError):
    """Variant reference is unknown to the reference directory."""

    code: str = "VARIANT_NOT_FOUND"

    def __init__(self, variant_id: str):
        self.variant_id = variant_id
        super().__init__(f"Variant not found: {variant_id}")


class LocationNotFoundError(NotFoundError):
    """Location reference is unknown to the reference directory."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Location not found: {location_id}")


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Ledger entries are immutable from creation; stock records are never
    deleted; transfers are frozen once completed or cancelled.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
