"""
Module: inventory_kernel.db.types
Responsibility: Cost precision and the rounding helper used for stored cost
    values, plus Decimal coercion for boundary input.  Every stored cost
    rounds through here so precision is identical system-wide.
Architecture position: Kernel > DB.  Importable from models/, domain/,
    services/ and selectors/.

Invariants enforced:
    - No floats for costs.  to_decimal() rejects float input.
    - Rounding is ROUND_HALF_UP unless a caller asks otherwise.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# Matches the Numeric(38, 9) cost columns
COST_DECIMAL_PLACES = 9


def quantum(decimal_places: int) -> Decimal:
    """Decimal exponent for the given number of places (2 -> 0.01)."""
    return Decimal(1).scaleb(-decimal_places)


def round_cost(
    value: Decimal,
    decimal_places: int = COST_DECIMAL_PLACES,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """
    Round a cost value to the given number of places.

    The only sanctioned rounding function for stored cost values.
    """
    return value.quantize(quantum(decimal_places), rounding=rounding)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an int, str or Decimal to Decimal.

    Raises:
        TypeError: For floats (binary floats are not exact) and other types.
        ValueError: For strings that are not numbers.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Cost values must not be {type(value).__name__}: {value!r}")
    if isinstance(value, (Decimal, int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise ValueError(f"Not a decimal number: {value!r}") from None
        if not result.is_finite():
            raise ValueError(f"Not a finite decimal number: {value!r}")
        return result
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")
