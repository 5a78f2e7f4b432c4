"""
Fixed-point helpers for material quantities and currency.

Quantities are kept to QUANTITY_DECIMAL_PLACES, money to COST_DECIMAL_PLACES.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

from app.core.config import settings

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce a DB/JSON value to Decimal (None -> 0)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_quantity(value: Any) -> Decimal:
    return to_decimal(value).quantize(settings.quantity_quantum, rounding=ROUND_HALF_UP)


def round_cost(value: Any) -> Decimal:
    return to_decimal(value).quantize(settings.cost_quantum, rounding=ROUND_HALF_UP)


def line_cost(unit_cost: Any, quantity: Any) -> Decimal:
    """Total cost of a line: unit cost x quantity, rounded to cents."""
    return round_cost(to_decimal(unit_cost) * to_decimal(quantity))


def sum_costs(values: Iterable[Any]) -> Decimal:
    return round_cost(sum((to_decimal(v) for v in values), ZERO))
