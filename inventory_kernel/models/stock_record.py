"""
Module: inventory_kernel.models.stock_record
Responsibility: ORM persistence for the per-(variant, location) stock record:
    the current on-hand quantity, the reorder threshold and the running
    weighted-average cost.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One record per (variant_id, location_id) (UNIQUE constraint).
    - quantity >= 0 (CHECK constraint; the Stock Adjustment Service also
      refuses any debit that would cross zero).
    - Records are never deleted, only zeroed (ORM listener).

Failure modes:
    - IntegrityError when two writers race to create the same pair; the
      Stock Adjustment Service retries its lock-or-create in that case.
    - ImmutabilityViolationError on DELETE.

Audit relevance:
    quantity always equals the sum of the deltas of the record's ledger
    entries; average_cost * cumulative_received_qty equals
    cumulative_cost_amount to within the configured tolerance.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Index,
    Integer,
    Numeric,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase, UUIDString


class StockRecord(TrackedBase):
    """
    Current stock of one variant at one location.

    Contract:
        Mutated only by StockAdjustmentService, always together with exactly
        one appended LedgerEntry.  Cost fields move only on receipts.

    Guarantees:
        - average_cost is cumulative_cost_amount / cumulative_received_qty,
          or 0 before the first receipt.
        - last_sequence is the sequence of the newest ledger entry.
    """

    __tablename__ = "stock_records"

    __table_args__ = (
        UniqueConstraint(
            "variant_id", "location_id", name="uq_stock_record_variant_location"
        ),
        CheckConstraint("quantity >= 0", name="ck_stock_record_quantity_non_negative"),
        CheckConstraint(
            "reorder_threshold >= 0", name="ck_stock_record_threshold_non_negative"
        ),
        Index("idx_stock_record_location", "location_id"),
    )

    variant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    location_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    reorder_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    average_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    # Receipt totals backing average_cost
    cumulative_received_qty: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    cumulative_cost_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    # Bumped on every mutation
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_sequence: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.reorder_threshold

    def __repr__(self) -> str:
        return (
            f"<StockRecord variant={self.variant_id} location={self.location_id} "
            f"qty={self.quantity} avg={self.average_cost}>"
        )
