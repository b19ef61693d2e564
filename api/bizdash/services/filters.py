from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, TypeVar

from bizdash.services.totals import TOTAL_EXPONENT

T = TypeVar("T")


@dataclass(frozen=True)
class SearchableRecord:
    party_name: Optional[str]
    date: Optional[date]
    total: Any = None
    keywords: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # accepts "YYYY-MM-DD" strings as they arrive from the API
        object.__setattr__(self, "date", parse_date(self.date))
        object.__setattr__(self, "keywords", tuple(k for k in self.keywords if k))


@dataclass(frozen=True)
class DateRange:
    start: Optional[date] = None
    end: Optional[date] = None

    def __contains__(self, value: Optional[date]) -> bool:
        if value is None:
            return False
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True


def parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    # full timestamps are accepted and truncated to their day
    try:
        return datetime.fromisoformat(text).date()
    except ValueError as exc:
        raise ValueError(f"Invalid date: {text!r} (expected YYYY-MM-DD)") from exc


def normalize_date_range(start: Any = None, end: Any = None) -> Optional[DateRange]:
    start_date = parse_date(start)
    end_date = parse_date(end)
    if start_date is None and end_date is None:
        return None
    if start_date is not None and end_date is not None and start_date > end_date:
        start_date, end_date = end_date, start_date
    return DateRange(start=start_date, end=end_date)


def amount_text(value: Any) -> str:
    """Render an amount the way the dashboard prints it: ``500``, ``12.5``."""
    if value is None:
        return ""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return str(value)
    if not amount.is_finite() or abs(amount.adjusted()) >= TOTAL_EXPONENT:
        return str(value)
    if amount == amount.to_integral_value():
        return str(int(amount))
    return format(amount.normalize(), "f")


def _matches(record: SearchableRecord, needle: str) -> bool:
    if not needle:
        return True
    haystack = [
        record.party_name or "",
        record.date.isoformat() if record.date else "",
        amount_text(record.total),
        *record.keywords,
    ]
    return any(needle in (field or "").lower() for field in haystack)


def filter_records(
    records: Iterable[T],
    query: Optional[str] = "",
    date_range: Optional[DateRange] = None,
    key: Optional[Callable[[T], SearchableRecord]] = None,
) -> list[T]:
    needle = (query or "").strip().lower()
    out: list[T] = []
    for record in records:
        view = key(record) if key else record
        if date_range is not None and view.date not in date_range:
            continue
        if _matches(view, needle):
            out.append(record)
    return out
