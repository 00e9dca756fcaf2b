"""
Transfer lifecycle declaration.

The state machine and, for each transition, the stock movements it
performs with their compensations.  Declared once here; executed by
TransferOrchestrator through SagaExecutor.

    pending --dispatch--> in_transit --receive--> completed
       |                      |
       +--complete------------|-----------------> completed
       |                      |
       +--cancel_pending--> cancelled <--cancel_in_transit
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from inventory_kernel.domain.workflow import Guard, Transition, Workflow
from inventory_kernel.models.ledger_entry import LedgerEntryType
from inventory_kernel.models.transfer import TransferStatus


class Side(str, Enum):
    SOURCE = "source"
    DEST = "dest"


class Direction(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


@dataclass(frozen=True)
class StockMove:
    """Move the transfer quantity in or out of one end of the transfer."""

    side: Side
    direction: Direction
    entry_type: LedgerEntryType


@dataclass(frozen=True)
class TransferStepSpec:
    name: str
    move: StockMove
    compensation: StockMove | None = None


DEBIT_SOURCE = TransferStepSpec(
    name="debit_source",
    move=StockMove(Side.SOURCE, Direction.DEBIT, LedgerEntryType.TRANSFER_OUT),
    compensation=StockMove(Side.SOURCE, Direction.CREDIT, LedgerEntryType.TRANSFER_CANCEL),
)

CREDIT_DEST = TransferStepSpec(
    name="credit_dest",
    move=StockMove(Side.DEST, Direction.CREDIT, LedgerEntryType.TRANSFER_IN),
)

RETURN_TO_SOURCE = TransferStepSpec(
    name="return_to_source",
    move=StockMove(Side.SOURCE, Direction.CREDIT, LedgerEntryType.TRANSFER_CANCEL),
)


_SOURCE_HAS_STOCK = Guard(
    name="source_has_stock",
    description="Source location holds at least the transfer quantity",
)

_PENDING = TransferStatus.PENDING.value
_IN_TRANSIT = TransferStatus.IN_TRANSIT.value
_COMPLETED = TransferStatus.COMPLETED.value
_CANCELLED = TransferStatus.CANCELLED.value


TRANSFER_WORKFLOW = Workflow(
    name="inventory_transfer",
    description="Stock transfer between two locations",
    initial_state=_PENDING,
    states=(_PENDING, _IN_TRANSIT, _COMPLETED, _CANCELLED),
    transitions=(
        Transition(_PENDING, _IN_TRANSIT, action="dispatch", guard=_SOURCE_HAS_STOCK),
        Transition(_IN_TRANSIT, _COMPLETED, action="receive"),
        Transition(_PENDING, _COMPLETED, action="complete", guard=_SOURCE_HAS_STOCK),
        Transition(_IN_TRANSIT, _CANCELLED, action="cancel_in_transit"),
        Transition(_PENDING, _CANCELLED, action="cancel_pending", moves_stock=False),
    ),
    terminal_states=(_COMPLETED, _CANCELLED),
)


TRANSFER_SAGAS: dict[str, tuple[TransferStepSpec, ...]] = {
    "dispatch": (DEBIT_SOURCE,),
    "receive": (CREDIT_DEST,),
    "complete": (DEBIT_SOURCE, CREDIT_DEST),
    "cancel_in_transit": (RETURN_TO_SOURCE,),
    "cancel_pending": (),
}

# A transfer may be created directly in any non-cancelled state
INITIAL_STATUSES = frozenset({
    TransferStatus.PENDING,
    TransferStatus.IN_TRANSIT,
    TransferStatus.COMPLETED,
})
