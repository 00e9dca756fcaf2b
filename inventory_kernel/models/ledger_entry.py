"""
Module: inventory_kernel.models.ledger_entry
Responsibility: ORM persistence for the append-only stock ledger.  One row
    per quantity change, written in the same flush as the StockRecord
    change it describes.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Immutable from creation: UPDATE and DELETE are rejected by the ORM
      listeners in db/immutability.py.
    - (stock_record_id, sequence) is unique; sequence increases by one per
      entry of a stock record.
    - resulting_quantity is the stock record's quantity after applying delta.

Audit relevance:
    The ledger is the history of record.  Summing delta per stock record
    reproduces its quantity; summing delta per related_transfer_id gives the
    net stock effect of a transfer.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UTCDateTime, UUIDString


class LedgerEntryType(str, Enum):
    """Reason code of a ledger entry.

    The type is chosen by the caller at mutation time and never rewritten.
    """

    RECEIPT = "receipt"
    SALE = "sale"
    ADJUSTMENT_ADD = "adjustment-add"
    ADJUSTMENT_REDUCE = "adjustment-reduce"
    TRANSFER_OUT = "transfer-out"
    TRANSFER_IN = "transfer-in"
    TRANSFER_CANCEL = "transfer-cancel"


class LedgerEntry(Base):
    """
    One immutable stock movement.

    delta is signed: positive for credits, negative for debits.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint(
            "stock_record_id", "sequence", name="uq_ledger_entry_record_sequence"
        ),
        Index("idx_ledger_entry_variant_location", "variant_id", "location_id"),
        Index("idx_ledger_entry_transfer", "related_transfer_id"),
        Index("idx_ledger_entry_receiving", "related_receiving_id"),
    )

    stock_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_records.id"),
        nullable=False,
    )

    # Denormalized for history queries without a join
    variant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    location_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    delta: Mapped[int] = mapped_column(BigInteger, nullable=False)

    resulting_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    entry_type: Mapped[LedgerEntryType] = mapped_column(String(30), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    note: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    related_transfer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True
    )

    related_receiving_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True
    )

    # Landed cost per unit, recorded on receipts
    unit_cost: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.entry_type} delta={self.delta} "
            f"-> {self.resulting_quantity} seq={self.sequence}>"
        )
