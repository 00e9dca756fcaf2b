"""
Configuration schema (``inventory_config.schema``).

Responsibility
--------------
Typed, frozen description of every tunable of the inventory system.  A
value of ``InventoryConfig`` is validated once at construction; consumers
never re-check it.

Architecture position
---------------------
**Config layer**.  No dependency on kernel, engines or services.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class FreightAllocationBasis(str, Enum):
    """How freight on a receiving event is spread over its lines."""

    QUANTITY = "quantity"
    VALUE = "value"


MAX_LIST_PAGE_LIMIT = 500

_OPEN_TRANSFER_STATUSES = ("pending", "in_transit", "completed")


@dataclass(frozen=True)
class InventoryConfig:
    """
    Process-wide inventory settings.

    currency_decimal_places governs freight allocation rounding;
    cost_decimal_places governs stored average costs.
    """

    currency_code: str = "USD"
    currency_decimal_places: int = 2
    cost_decimal_places: int = 9
    default_reorder_threshold: int = 5
    freight_allocation_basis: FreightAllocationBasis = FreightAllocationBasis.QUANTITY
    average_cost_tolerance: Decimal = Decimal("0.000001")
    default_transfer_status: str = "completed"
    list_page_limit: int = 50

    def __post_init__(self) -> None:
        code = self.currency_code
        if not isinstance(code, str) or len(code) != 3 or not code.isalpha() or not code.isupper():
            raise ValueError(f"currency_code must be a 3-letter ISO 4217 code, got {code!r}")
        if not 0 <= self.currency_decimal_places <= 6:
            raise ValueError(
                f"currency_decimal_places must be within 0..6, got {self.currency_decimal_places}"
            )
        if not self.currency_decimal_places <= self.cost_decimal_places <= 9:
            raise ValueError(
                "cost_decimal_places must be between currency_decimal_places and 9, "
                f"got {self.cost_decimal_places}"
            )
        if self.default_reorder_threshold < 0:
            raise ValueError("default_reorder_threshold cannot be negative")
        if not isinstance(self.freight_allocation_basis, FreightAllocationBasis):
            raise ValueError(
                f"freight_allocation_basis must be a FreightAllocationBasis, "
                f"got {self.freight_allocation_basis!r}"
            )
        if not isinstance(self.average_cost_tolerance, Decimal) or self.average_cost_tolerance < 0:
            raise ValueError("average_cost_tolerance must be a non-negative Decimal")
        if self.default_transfer_status not in _OPEN_TRANSFER_STATUSES:
            raise ValueError(
                f"default_transfer_status must be one of {_OPEN_TRANSFER_STATUSES}, "
                f"got {self.default_transfer_status!r}"
            )
        if not 1 <= self.list_page_limit <= MAX_LIST_PAGE_LIMIT:
            raise ValueError(
                f"list_page_limit must be within 1..{MAX_LIST_PAGE_LIMIT}, "
                f"got {self.list_page_limit}"
            )
