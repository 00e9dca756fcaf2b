"""
Lightweight input validation helpers.

Pure checks with no I/O, used at the service boundary so that bad input
fails with a typed ValidationError before any row is locked or written.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from inventory_kernel.db.types import to_decimal
from inventory_kernel.exceptions import (
    InvalidAmountError,
    InvalidQuantityError,
    ValidationError,
)


def require_uuid(value: Any, name: str) -> UUID:
    """Return value as a UUID; strings in canonical form are accepted."""
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            pass
    raise ValidationError(f"{name} must be a UUID, got {value!r}", field=name)


def require_quantity(value: Any, *, allow_zero: bool = False) -> int:
    """
    Return value if it is a whole, positive unit count.

    allow_zero admits 0 (absolute "set" targets).  bool is rejected even
    though it is an int subclass.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(value, "must be an integer")
    if allow_zero:
        if value < 0:
            raise InvalidQuantityError(value, "cannot be negative")
    elif value <= 0:
        raise InvalidQuantityError(value)
    return value


def require_amount(value: Any, name: str) -> Decimal:
    """Return value as a non-negative Decimal (unit cost, freight)."""
    try:
        amount = to_decimal(value)
    except (TypeError, ValueError) as exc:
        raise InvalidAmountError(name, value, str(exc)) from None
    if amount < 0:
        raise InvalidAmountError(name, value)
    return amount


def require_text(value: Any, name: str) -> str:
    """Return value stripped; blank or non-string values are rejected."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", field=name)
    return value.strip()
