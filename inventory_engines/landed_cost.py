"""
Module: inventory_engines.landed_cost
Responsibility:
    Landed cost of a receiving event: freight is spread over the lines,
    each line's landed total is ``unit_cost * quantity + allocated_freight``,
    and the weighted-average cost of a stock record after a receipt.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Freight splitting is
    delegated to AllocationEngine.

Invariants enforced:
    - sum(allocated_freight) == total_freight exactly; every line but the
      last is rounded half-up to currency places, the last takes the rest.
    - landed_cost_per_unit == total_landed_cost / quantity, rounded to
      cost places.

Failure modes:
    - ValueError on empty lines, non-positive quantities, or negative unit
      costs / freight.  Callers validate first and raise typed errors; these
      checks guard direct engine use.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID

from inventory_engines.allocation import AllocationEngine, AllocationTarget
from inventory_engines.tracer import traced_engine
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.landed_cost")


class AllocationBasis(str, Enum):
    """Weight used to spread freight over receiving lines."""

    QUANTITY = "quantity"  # units received
    VALUE = "value"  # unit_cost * quantity


class CostLine(Protocol):
    variant_id: UUID
    quantity: int
    unit_cost: Decimal


@dataclass(frozen=True)
class LandedCostLine:
    """One receiving line with its share of freight."""

    variant_id: UUID
    quantity: int
    unit_cost: Decimal
    allocated_freight: Decimal
    total_landed_cost: Decimal
    landed_cost_per_unit: Decimal

    @property
    def extended_cost(self) -> Decimal:
        return self.unit_cost * self.quantity


@dataclass(frozen=True)
class LandedCostResult:
    lines: tuple[LandedCostLine, ...]
    total_freight: Decimal
    basis: AllocationBasis

    @property
    def total_landed_cost(self) -> Decimal:
        return sum((line.total_landed_cost for line in self.lines), Decimal("0"))

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)


@dataclass(frozen=True)
class AverageCost:
    """Cost basis of a stock record after a receipt."""

    cumulative_quantity: int
    cumulative_cost: Decimal
    average_cost: Decimal


def _quantum(places: int) -> Decimal:
    return Decimal(10) ** -places


def weighted_average_cost(
    prior_quantity: int,
    prior_cost: Decimal,
    received_quantity: int,
    received_cost: Decimal,
    cost_decimal_places: int = 9,
) -> AverageCost:
    """
    Roll a receipt into a cumulative cost basis.

    ``prior_quantity`` / ``prior_cost`` are the cumulative received units and
    cost before the receipt.  The average is 0 while nothing was received.
    """
    quantity = prior_quantity + received_quantity
    cost = prior_cost + received_cost
    if quantity == 0:
        average = Decimal("0")
    else:
        average = (cost / quantity).quantize(
            _quantum(cost_decimal_places), rounding=ROUND_HALF_UP
        )
    return AverageCost(cumulative_quantity=quantity, cumulative_cost=cost, average_cost=average)


class LandedCostCalculator:
    """
    Freight allocation and landed cost for one receiving event.

    With the value basis and an all-zero value (free goods), freight falls
    back to the quantity basis so it is still fully assigned.
    """

    def __init__(
        self,
        currency_decimal_places: int = 2,
        cost_decimal_places: int = 9,
        basis: AllocationBasis = AllocationBasis.QUANTITY,
    ):
        self._allocator = AllocationEngine(decimal_places=currency_decimal_places)
        self._cost_places = cost_decimal_places
        self._basis = AllocationBasis(basis)

    @traced_engine("landed_cost", "1.0", fingerprint_fields=("lines", "total_freight"))
    def calculate(
        self,
        *,
        lines: Sequence[CostLine],
        total_freight: Decimal,
    ) -> LandedCostResult:
        if not lines:
            raise ValueError("A receiving event needs at least one line")
        if total_freight < 0:
            raise ValueError(f"Freight cannot be negative: {total_freight}")
        for line in lines:
            if line.quantity <= 0:
                raise ValueError(f"Line {line.variant_id}: quantity must be positive")
            if line.unit_cost < 0:
                raise ValueError(f"Line {line.variant_id}: unit cost cannot be negative")

        basis = self._basis
        if basis is AllocationBasis.VALUE and all(line.unit_cost == 0 for line in lines):
            logger.warning("freight_value_basis_fallback", extra={"line_count": len(lines)})
            basis = AllocationBasis.QUANTITY

        targets = [
            AllocationTarget(
                target_id=index,
                weight=(
                    Decimal(line.quantity)
                    if basis is AllocationBasis.QUANTITY
                    else line.unit_cost * line.quantity
                ),
            )
            for index, line in enumerate(lines)
        ]
        allocation = self._allocator.allocate(amount=total_freight, targets=targets)

        cost_quantum = _quantum(self._cost_places)
        landed: list[LandedCostLine] = []
        for line, share in zip(lines, allocation.lines):
            total = line.unit_cost * line.quantity + share.allocated
            landed.append(
                LandedCostLine(
                    variant_id=line.variant_id,
                    quantity=line.quantity,
                    unit_cost=line.unit_cost,
                    allocated_freight=share.allocated,
                    total_landed_cost=total,
                    landed_cost_per_unit=(total / line.quantity).quantize(
                        cost_quantum, rounding=ROUND_HALF_UP
                    ),
                )
            )

        logger.info("landed_cost_calculated", extra={
            "line_count": len(landed),
            "total_freight": str(total_freight),
            "basis": basis.value,
        })

        return LandedCostResult(lines=tuple(landed), total_freight=total_freight, basis=basis)
