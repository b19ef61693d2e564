"""Line, product and final totals for sales bills and online orders.

Every figure is recomputed from scratch on each call, so the bill form can
call :func:`compute_totals` on every edit and always agree with what the
server stores. Malformed numbers never raise; they contribute zero.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Context, Decimal
from typing import Any

ZERO = Decimal("0")

# Prices, charges and quantities must stay below 10**15 and carry at most 60
# decimal places; totals are aggregated below 10**40. Within those bounds a
# 200-digit context keeps every product and sum exact.
AMOUNT_EXPONENT = 15
TOTAL_EXPONENT = 40
MAX_DECIMAL_PLACES = 60
_EXACT = Context(prec=200)

_PRICE_KEYS = ("unit_price", "productPrice", "product_price", "price")
_QUANTITY_KEYS = ("quantity", "qty")
_NAME_KEYS = ("name", "productName", "product_name")


@dataclass(frozen=True)
class LineItem:
    name: str = ""
    unit_price: Any = ZERO
    quantity: Any = 0

    @property
    def line_total(self) -> Decimal:
        return _EXACT.multiply(as_amount(self.unit_price), as_quantity(self.quantity))


@dataclass(frozen=True)
class Totals:
    lines: tuple[Decimal, ...]
    product_total: Decimal
    surcharge_total: Decimal
    final_total: Decimal


def as_amount(value: Any, max_exponent: int = AMOUNT_EXPONENT) -> Decimal:
    """Coerce a price or charge to a non-negative Decimal, 0 when unusable.

    Anything non-numeric, non-finite, negative, at or above
    ``10 ** max_exponent`` or finer than ``MAX_DECIMAL_PLACES`` is unusable.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        out = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        if not out.is_finite() or out <= 0:
            return ZERO
        if out.adjusted() >= max_exponent or out.as_tuple().exponent < -MAX_DECIMAL_PLACES:
            return ZERO
    except (ArithmeticError, ValueError, TypeError):
        return ZERO
    return out


def as_quantity(value: Any) -> int:
    amount = as_amount(value)
    if amount != amount.to_integral_value():
        return 0
    return int(amount)


def _add(values: Iterable[Decimal]) -> Decimal:
    total = ZERO
    for value in values:
        total = _EXACT.add(total, value)
    return total


def _pick(data: Mapping[str, Any], keys: tuple[str, ...], default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


def to_line_item(item: LineItem | Mapping[str, Any] | Any) -> LineItem:
    if isinstance(item, LineItem):
        return item
    if isinstance(item, Mapping):
        return LineItem(
            name=str(_pick(item, _NAME_KEYS, "") or ""),
            unit_price=_pick(item, _PRICE_KEYS),
            quantity=_pick(item, _QUANTITY_KEYS),
        )
    # pydantic models and other attribute-style records
    return LineItem(
        name=str(getattr(item, "product_name", "") or getattr(item, "name", "") or ""),
        unit_price=getattr(item, "product_price", getattr(item, "unit_price", None)),
        quantity=getattr(item, "quantity", None),
    )


def sum_amounts(values: Iterable[Any]) -> Decimal:
    return _add(as_amount(v, TOTAL_EXPONENT) for v in values)


def compute_totals(
    items: Iterable[LineItem | Mapping[str, Any] | Any],
    surcharges: Mapping[str, Any] | None = None,
) -> Totals:
    lines = tuple(to_line_item(item).line_total for item in items)
    product_total = _add(lines)
    surcharge_total = _add(as_amount(v) for v in (surcharges or {}).values())
    return Totals(
        lines=lines,
        product_total=product_total,
        surcharge_total=surcharge_total,
        final_total=_EXACT.add(product_total, surcharge_total),
    )
