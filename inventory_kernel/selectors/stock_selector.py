"""
Module: inventory_kernel.selectors.stock_selector
Responsibility: Read-only queries over stock records: the current level of a
    pair, everything at a location, and the low-stock report.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import StockLevel
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector[StockRecord]):
    """Stock level lookups."""

    def get(self, variant_id: UUID, location_id: UUID) -> StockLevel | None:
        """Current level of one pair, or None if nothing was ever recorded."""
        record = self.session.execute(
            select(StockRecord).where(
                StockRecord.variant_id == variant_id,
                StockRecord.location_id == location_id,
            )
        ).scalar_one_or_none()
        return StockLevel.from_model(record) if record is not None else None

    def quantity(self, variant_id: UUID, location_id: UUID) -> int:
        """On-hand quantity; 0 for a pair without a record."""
        level = self.get(variant_id, location_id)
        return level.quantity if level is not None else 0

    def at_location(self, location_id: UUID) -> list[StockLevel]:
        rows = self.session.execute(
            select(StockRecord)
            .where(StockRecord.location_id == location_id)
            .order_by(StockRecord.variant_id)
        ).scalars()
        return [StockLevel.from_model(r) for r in rows]

    def low_stock(self, location_id: UUID | None = None) -> list[StockLevel]:
        """
        Records at or below their reorder threshold.

        Ordered by location, then by how far below the threshold they are.
        """
        stmt = select(StockRecord).where(
            StockRecord.quantity <= StockRecord.reorder_threshold
        )
        if location_id is not None:
            stmt = stmt.where(StockRecord.location_id == location_id)
        stmt = stmt.order_by(
            StockRecord.location_id,
            (StockRecord.quantity - StockRecord.reorder_threshold),
            StockRecord.variant_id,
        )
        return [StockLevel.from_model(r) for r in self.session.execute(stmt).scalars()]

    def all(self) -> list[StockLevel]:
        rows = self.session.execute(
            select(StockRecord).order_by(StockRecord.location_id, StockRecord.variant_id)
        ).scalars()
        return [StockLevel.from_model(r) for r in rows]
