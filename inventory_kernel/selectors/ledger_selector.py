"""
Module: inventory_kernel.selectors.ledger_selector
Responsibility: Read-only queries over the stock ledger: per-pair history,
    entries of a transfer or receiving event, net transfer effects and the
    consistency check between stored totals and ledger history.
Architecture position: Kernel > Selectors.

Invariants verified:
    - quantity == sum(delta) per stock record.
    - average_cost agrees with cumulative_cost_amount /
      cumulative_received_qty to within the given tolerance.

Audit relevance:
    A transfer that went pending -> in_transit -> completed and one that
    went pending -> completed leave different entry shapes (transfer-out
    then transfer-in in separate steps, or both in one step).
    net_transfer_effect() sums deltas per location so both shapes compare
    equal.  A compensated attempt (transfer-out followed by a
    transfer-cancel credit) nets to zero.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select

from inventory_kernel.domain.dtos import LedgerDiscrepancy, LedgerEntryRecord
from inventory_kernel.models.ledger_entry import LedgerEntry, LedgerEntryType
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.selectors.base import BaseSelector


# Order of a transfer's movements within one clock tick: the source leaves
# before the destination receives, and a return to source comes last.
_TRANSFER_STEP_ORDER = case(
    (LedgerEntry.entry_type == LedgerEntryType.TRANSFER_OUT.value, 0),
    (LedgerEntry.entry_type == LedgerEntryType.TRANSFER_IN.value, 1),
    else_=2,
)


@dataclass(frozen=True)
class TransferEffect:
    """Net quantity moved by a transfer's ledger entries, per location."""

    transfer_id: UUID
    by_location: dict[UUID, int]
    entry_count: int

    @property
    def net_total(self) -> int:
        return sum(self.by_location.values())


class LedgerSelector(BaseSelector[LedgerEntry]):
    """Ledger history and consistency queries."""

    def history(
        self,
        variant_id: UUID,
        location_id: UUID,
        limit: int | None = None,
    ) -> list[LedgerEntryRecord]:
        """Entries of one pair in sequence order (oldest first)."""
        stmt = (
            select(LedgerEntry)
            .where(
                LedgerEntry.variant_id == variant_id,
                LedgerEntry.location_id == location_id,
            )
            .order_by(LedgerEntry.sequence)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [LedgerEntryRecord.from_model(e) for e in self.session.execute(stmt).scalars()]

    def for_transfer(self, transfer_id: UUID) -> list[LedgerEntryRecord]:
        """A transfer's entries in the order they were written."""
        rows = self.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.related_transfer_id == transfer_id)
            .order_by(LedgerEntry.created_at, _TRANSFER_STEP_ORDER, LedgerEntry.sequence)
        ).scalars()
        return [LedgerEntryRecord.from_model(e) for e in rows]

    def for_receiving(self, receiving_id: UUID) -> list[LedgerEntryRecord]:
        rows = self.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.related_receiving_id == receiving_id)
            .order_by(LedgerEntry.variant_id)
        ).scalars()
        return [LedgerEntryRecord.from_model(e) for e in rows]

    def net_transfer_effect(self, transfer_id: UUID) -> TransferEffect:
        rows = self.session.execute(
            select(
                LedgerEntry.location_id,
                func.sum(LedgerEntry.delta),
                func.count(LedgerEntry.id),
            )
            .where(LedgerEntry.related_transfer_id == transfer_id)
            .group_by(LedgerEntry.location_id)
        ).all()
        return TransferEffect(
            transfer_id=transfer_id,
            by_location={location_id: int(total) for location_id, total, _ in rows},
            entry_count=sum(int(count) for _, _, count in rows),
        )

    def sum_deltas(self, stock_record_id: UUID) -> int:
        total = self.session.execute(
            select(func.coalesce(func.sum(LedgerEntry.delta), 0))
            .where(LedgerEntry.stock_record_id == stock_record_id)
        ).scalar_one()
        return int(total)

    def verify_consistency(self, tolerance: Decimal) -> list[LedgerDiscrepancy]:
        """
        Compare every stock record with its ledger history.

        The cost check is per unit: |average_cost - cumulative_cost_amount /
        cumulative_received_qty| must not exceed ``tolerance``.
        """
        sums = dict(
            self.session.execute(
                select(LedgerEntry.stock_record_id, func.sum(LedgerEntry.delta))
                .group_by(LedgerEntry.stock_record_id)
            ).all()
        )

        discrepancies: list[LedgerDiscrepancy] = []
        records = self.session.execute(
            select(StockRecord).order_by(StockRecord.location_id, StockRecord.variant_id)
        ).scalars()
        for record in records:
            ledger_total = int(sums.get(record.id) or 0)
            if ledger_total != record.quantity:
                discrepancies.append(
                    LedgerDiscrepancy(
                        stock_record_id=record.id,
                        variant_id=record.variant_id,
                        location_id=record.location_id,
                        kind="quantity",
                        expected=Decimal(ledger_total),
                        actual=Decimal(record.quantity),
                    )
                )
            if record.cumulative_received_qty:
                expected_avg = (
                    Decimal(record.cumulative_cost_amount) / record.cumulative_received_qty
                )
                actual_avg = Decimal(record.average_cost)
                if abs(actual_avg - expected_avg) > tolerance:
                    discrepancies.append(
                        LedgerDiscrepancy(
                            stock_record_id=record.id,
                            variant_id=record.variant_id,
                            location_id=record.location_id,
                            kind="cost",
                            expected=expected_avg,
                            actual=actual_avg,
                        )
                    )
        return discrepancies
