from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from bizdash.services.totals import Totals, as_amount, as_quantity, compute_totals, to_line_item


@dataclass(frozen=True)
class Bill:
    lines: list[dict[str, Any]]
    surcharges: dict[str, Decimal]
    totals: Totals


def build_bill(
    products: Sequence[Any],
    surcharges: Mapping[str, Any] | None = None,
    *,
    drop_empty: bool = True,
) -> Bill:
    """Price submitted products and surcharges into storable rows.

    Lines with a zero quantity are dropped when ``drop_empty`` is set: the
    bill form offers every dealer product with quantity 0 and only the ones
    the user filled in belong to the sale. Dropping them leaves the totals
    unchanged.
    """
    items = [to_line_item(p) for p in products]
    totals = compute_totals(items, surcharges)

    lines = [
        {
            "product_name": item.name,
            "product_price": as_amount(item.unit_price),
            "quantity": as_quantity(item.quantity),
            "total": line_total,
        }
        for item, line_total in zip(items, totals.lines)
    ]
    if drop_empty:
        lines = [line for line in lines if line["quantity"] > 0]

    kept_surcharges = {str(name): as_amount(amount) for name, amount in (surcharges or {}).items()}
    kept_surcharges = {name: amount for name, amount in kept_surcharges.items() if amount > 0}
    return Bill(lines=lines, surcharges=kept_surcharges, totals=totals)
