"""
inventory_services.cost_accounting_service -- purchase receipts.

Responsibility:
    Turns a receiving event (lines + one freight charge at one location)
    into receipt credits.  Freight is spread by LandedCostCalculator; each
    line is credited with its landed total so the stock record's weighted
    average cost absorbs the freight.

Architecture position:
    Services layer.  Pure math lives in inventory_engines.landed_cost;
    writes go through StockAdjustmentService.  Flush-only.

Invariants enforced:
    - sum(allocated_freight) == total_freight.
    - Every ledger entry of one receiving event carries the same
      related_receiving_id.
    - All input is validated before the first credit.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from inventory_engines.landed_cost import (
    AllocationBasis,
    AverageCost,
    LandedCostCalculator,
    LandedCostLine,
    weighted_average_cost,
)
from inventory_kernel.domain.dtos import (
    LedgerEntryRecord,
    ReceivingLine,
    StockLevel,
    StockMutation,
    StockMutationMeta,
)
from inventory_kernel.domain.validation import require_amount, require_quantity, require_uuid
from inventory_kernel.exceptions import ValidationError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.ledger_entry import LedgerEntryType
from inventory_kernel.selectors.stock_selector import StockSelector
from inventory_kernel.services.stock_adjustment_service import StockAdjustmentService

logger = get_logger("services.cost_accounting")


@dataclass(frozen=True)
class ReceivedLine:
    landed: LandedCostLine
    mutation: StockMutation


@dataclass(frozen=True)
class ReceivingResult:
    """Outcome of receive_purchase, lines in input order."""

    receiving_id: UUID
    location_id: UUID
    total_freight: Decimal
    lines: tuple[ReceivedLine, ...]

    @property
    def stock_records(self) -> tuple[StockLevel, ...]:
        return tuple(line.mutation.stock_record for line in self.lines)

    @property
    def ledger_entries(self) -> tuple[LedgerEntryRecord, ...]:
        return tuple(line.mutation.ledger_entry for line in self.lines)

    @property
    def total_landed_cost(self) -> Decimal:
        return sum((line.landed.total_landed_cost for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class PreviewLine:
    landed: LandedCostLine
    current_quantity: int
    current_average_cost: Decimal
    projected: AverageCost


@dataclass(frozen=True)
class ReceiptPreview:
    """What receive_purchase would do, computed without writing."""

    location_id: UUID
    total_freight: Decimal
    basis: AllocationBasis
    lines: tuple[PreviewLine, ...]


class CostAccountingService:
    """
    Receive purchases at landed cost.

    Non-goals:
        Does NOT commit; InventoryService owns the transaction.
    """

    def __init__(
        self,
        session: Session,
        adjustments: StockAdjustmentService,
        *,
        currency_decimal_places: int = 2,
        cost_decimal_places: int = 9,
        basis: AllocationBasis = AllocationBasis.QUANTITY,
    ):
        self._session = session
        self._adjustments = adjustments
        self._cost_places = cost_decimal_places
        self._calculator = LandedCostCalculator(
            currency_decimal_places=currency_decimal_places,
            cost_decimal_places=cost_decimal_places,
            basis=basis,
        )

    @staticmethod
    def _normalize_lines(lines: Sequence[ReceivingLine]) -> list[ReceivingLine]:
        if not lines:
            raise ValidationError("A receiving event needs at least one line", field="lines")
        return [
            ReceivingLine(
                variant_id=require_uuid(line.variant_id, "variant_id"),
                quantity=require_quantity(line.quantity),
                unit_cost=require_amount(line.unit_cost, "unit_cost"),
            )
            for line in lines
        ]

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
        Credit every line as a receipt at its landed cost.

        Preconditions:
            lines non-empty, each with quantity > 0 and unit_cost >= 0;
            total_freight >= 0.
        Postconditions:
            One receipt ledger entry per line, tagged with receiving_id.
        """
        location_id = require_uuid(location_id, "location_id")
        actor_id = require_uuid(actor_id, "actor_id")
        receiving_id = (
            require_uuid(receiving_id, "receiving_id") if receiving_id is not None else uuid4()
        )
        freight = require_amount(total_freight, "total_freight")
        normalized = self._normalize_lines(lines)

        with LogContext.bind(receiving_id=receiving_id):
            landed = self._calculator.calculate(lines=normalized, total_freight=freight)

            # Same location for every line, so variant order is the lock order
            order = sorted(range(len(normalized)), key=lambda i: str(normalized[i].variant_id))
            mutations: dict[int, StockMutation] = {}
            for index in order:
                line = landed.lines[index]
                mutations[index] = self._adjustments.credit(
                    line.variant_id,
                    location_id,
                    line.quantity,
                    actor_id,
                    LedgerEntryType.RECEIPT,
                    note=note,
                    meta=StockMutationMeta(
                        related_receiving_id=receiving_id,
                        unit_cost=line.unit_cost,
                        landed_cost_total=line.total_landed_cost,
                    ),
                )

            result = ReceivingResult(
                receiving_id=receiving_id,
                location_id=location_id,
                total_freight=freight,
                lines=tuple(
                    ReceivedLine(landed=landed.lines[i], mutation=mutations[i])
                    for i in range(len(normalized))
                ),
            )

            logger.info(
                "purchase_received",
                extra={
                    "location_id": location_id,
                    "line_count": len(result.lines),
                    "total_quantity": landed.total_quantity,
                    "total_freight": str(freight),
                    "total_landed_cost": str(result.total_landed_cost),
                },
            )
        return result

    def preview_receipt(
        self,
        location_id: UUID,
        lines: Sequence[ReceivingLine],
        total_freight: Decimal,
    ) -> ReceiptPreview:
        """
        Landed cost and projected average cost per line, read-only.

        Repeated variants accumulate, so the projection of a later line
        includes the earlier lines of the same receipt.
        """
        location_id = require_uuid(location_id, "location_id")
        freight = require_amount(total_freight, "total_freight")
        normalized = self._normalize_lines(lines)

        landed = self._calculator.calculate(lines=normalized, total_freight=freight)
        stock = StockSelector(self._session)

        running: dict[UUID, AverageCost] = {}
        preview: list[PreviewLine] = []
        for line in landed.lines:
            level = stock.get(line.variant_id, location_id)
            prior = running.get(line.variant_id)
            if prior is None:
                prior = AverageCost(
                    cumulative_quantity=level.cumulative_received_qty if level else 0,
                    cumulative_cost=level.cumulative_cost_amount if level else Decimal("0"),
                    average_cost=level.average_cost if level else Decimal("0"),
                )
            projected = weighted_average_cost(
                prior.cumulative_quantity,
                prior.cumulative_cost,
                line.quantity,
                line.total_landed_cost,
                cost_decimal_places=self._cost_places,
            )
            running[line.variant_id] = projected
            preview.append(
                PreviewLine(
                    landed=line,
                    current_quantity=level.quantity if level else 0,
                    current_average_cost=level.average_cost if level else Decimal("0"),
                    projected=projected,
                )
            )

        return ReceiptPreview(
            location_id=location_id,
            total_freight=freight,
            basis=landed.basis,
            lines=tuple(preview),
        )
