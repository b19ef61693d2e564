from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from bizdash.services.filters import parse_date
from bizdash.services.totals import sum_amounts

UNKNOWN_DEALER = "Unknown Dealer"


def monthly_order_trend(orders: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Online order totals per calendar month, oldest month first."""
    by_month: dict[date, list[Any]] = defaultdict(list)
    for order in orders:
        order_date = parse_date(order.get("order_date"))
        if order_date is None:
            continue
        by_month[order_date.replace(day=1)].append(order.get("total_amount"))

    return [
        {"month": month.strftime("%b %Y"), "sales": sum_amounts(by_month[month])}
        for month in sorted(by_month)
    ]


def dealer_sales_breakdown(
    sales: Iterable[Mapping[str, Any]],
    month: int,
    year: int,
) -> list[dict[str, Any]]:
    """Per-dealer share of one month's sales, largest first."""
    by_dealer: dict[str, list[Any]] = defaultdict(list)
    for sale in sales:
        sale_date = parse_date(sale.get("date"))
        if sale_date is None or sale_date.month != month or sale_date.year != year:
            continue
        dealer = sale.get("dealer_name") or UNKNOWN_DEALER
        by_dealer[dealer].append(sale.get("total_amount"))

    dealer_totals = {dealer: sum_amounts(amounts) for dealer, amounts in by_dealer.items()}
    month_total = sum_amounts(dealer_totals.values())
    rows = [
        {
            "dealer": dealer,
            "sales": amount,
            "percentage": float(amount / month_total * 100) if month_total > 0 else 0.0,
        }
        for dealer, amount in dealer_totals.items()
    ]
    return sorted(rows, key=lambda row: row["sales"], reverse=True)
