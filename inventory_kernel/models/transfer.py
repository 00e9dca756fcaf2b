"""
Module: inventory_kernel.models.transfer
Responsibility: ORM persistence for stock transfers between two locations.
Architecture position: Kernel > Models.  May import from db/ only.  The
    lifecycle rules live in inventory_services.transfer_workflow.

Invariants enforced:
    - quantity > 0 and source_location_id != dest_location_id (CHECK).
    - Once status is completed or cancelled, status, quantity, variant and
      locations are frozen (ORM listener in db/immutability.py).
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString


class TransferStatus(str, Enum):
    """Lifecycle status of a transfer.

    pending -> in_transit -> completed, pending -> completed, and cancel
    from either open state.  completed and cancelled are terminal.
    """

    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TransferStatus.COMPLETED, TransferStatus.CANCELLED)


# Fields frozen once a transfer reaches a terminal status
TRANSFER_FROZEN_FIELDS = (
    "status",
    "quantity",
    "variant_id",
    "source_location_id",
    "dest_location_id",
)


class TransferRecord(TrackedBase):
    """A move of `quantity` units of one variant between two locations."""

    __tablename__ = "transfer_records"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_transfer_quantity_positive"),
        CheckConstraint(
            "source_location_id <> dest_location_id",
            name="ck_transfer_distinct_locations",
        ),
        Index("idx_transfer_source", "source_location_id"),
        Index("idx_transfer_dest", "dest_location_id"),
        Index("idx_transfer_status", "status"),
        Index("idx_transfer_created_at", "created_at"),
    )

    source_location_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    dest_location_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    variant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[TransferStatus] = mapped_column(
        String(20),
        default=TransferStatus.PENDING,
        nullable=False,
    )

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TransferRecord {self.id} {self.status} qty={self.quantity} "
            f"{self.source_location_id} -> {self.dest_location_id}>"
        )
