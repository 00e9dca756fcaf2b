"""
Module: inventory_engines.allocation
Responsibility:
    Split one amount across several targets by weight with deterministic
    rounding.  Freight on a receiving event is spread this way.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Conservation: the allocated amounts sum to the source amount exactly.
    - Every target but the last is rounded half-up to ``decimal_places``;
      the last target absorbs the residual.
    - Purity: no clock access, no I/O.

Failure modes:
    - ValueError on zero total weight or a negative weight.

Usage:
    engine = AllocationEngine(decimal_places=2)
    result = engine.allocate(
        amount=Decimal("50.00"),
        targets=[
            AllocationTarget(target_id="line-1", weight=Decimal(10)),
            AllocationTarget(target_id="line-2", weight=Decimal(5)),
        ],
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from inventory_engines.tracer import traced_engine
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class AllocationTarget:
    """A recipient of part of an allocated amount."""

    target_id: str | int | UUID
    weight: Decimal = Decimal("1")

    def __post_init__(self) -> None:
        if self.weight < Decimal("0"):
            raise ValueError("Weight cannot be negative")


@dataclass(frozen=True)
class AllocationLine:
    target_id: str | int | UUID
    allocated: Decimal
    is_rounding_target: bool = False


@dataclass(frozen=True)
class AllocationResult:
    """
    Outcome of one allocation run.

    ``rounding_adjustment`` is the difference between what the last target
    received and its own half-up share.
    """

    source_amount: Decimal
    lines: tuple[AllocationLine, ...]
    total_allocated: Decimal
    rounding_adjustment: Decimal

    @property
    def is_fully_allocated(self) -> bool:
        return self.total_allocated == self.source_amount


class AllocationEngine:
    """
    Allocate an amount across weighted targets.

    Contract:
        Pure; intermediate ratios use full Decimal precision, final amounts
        are rounded half-up to ``decimal_places``.
    """

    def __init__(self, decimal_places: int = 2):
        self._places = Decimal(10) ** -decimal_places

    @traced_engine("allocation", "1.0", fingerprint_fields=("amount",))
    def allocate(
        self,
        amount: Decimal,
        targets: Sequence[AllocationTarget],
    ) -> AllocationResult:
        """Allocate ``amount`` to ``targets`` in proportion to their weights."""
        logger.debug("allocation_started", extra={
            "amount": str(amount),
            "target_count": len(targets),
        })

        if not targets:
            logger.warning("allocation_no_targets", extra={"amount": str(amount)})
            return AllocationResult(
                source_amount=amount,
                lines=(),
                total_allocated=Decimal("0"),
                rounding_adjustment=Decimal("0"),
            )

        total_weight = sum((t.weight for t in targets), Decimal("0"))
        if total_weight == 0:
            raise ValueError("Total weight cannot be zero")

        *head, last = targets
        others = [
            (amount * t.weight / total_weight).quantize(self._places, rounding=ROUND_HALF_UP)
            for t in head
        ]
        residual = amount - sum(others, Decimal("0"))

        lines = tuple(
            [AllocationLine(t.target_id, share) for t, share in zip(head, others)]
            + [AllocationLine(last.target_id, residual, is_rounding_target=True)]
        )

        total_allocated = sum((line.allocated for line in lines), Decimal("0"))
        assert total_allocated == amount, (
            f"Allocation conservation violated: {total_allocated} != {amount}"
        )

        own_share = (amount * last.weight / total_weight).quantize(
            self._places, rounding=ROUND_HALF_UP
        )
        rounding_adjustment = residual - own_share

        logger.info("allocation_completed", extra={
            "source_amount": str(amount),
            "total_allocated": str(total_allocated),
            "rounding_adjustment": str(rounding_adjustment),
            "line_count": len(lines),
        })

        return AllocationResult(
            source_amount=amount,
            lines=lines,
            total_allocated=total_allocated,
            rounding_adjustment=rounding_adjustment,
        )
