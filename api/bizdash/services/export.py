from __future__ import annotations

import io
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from typing import Any, Optional

import pandas as pd

from bizdash.services.totals import sum_amounts

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
GRAND_TOTAL_LABEL = "Grand Total"


def _cell(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Mapping):
        return ", ".join(f"{k}: {v}" for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return "; ".join(str(_cell(v)) for v in value)
    return value


def build_workbook(
    rows: Iterable[Mapping[str, Any]],
    columns: Sequence[tuple[str, str]],
    sheet_name: str,
    total_column: Optional[str] = None,
    label_column: Optional[str] = None,
) -> bytes:
    """Render rows into an .xlsx file.

    ``columns`` pairs a row key with its header. With ``total_column`` a
    trailing "Grand Total" row sums that column; the label goes into
    ``label_column`` (the first column by default).
    """
    rows = list(rows)
    records = [{header: _cell(row.get(key)) for key, header in columns} for row in rows]

    if total_column is not None:
        headers = dict(columns)
        label_header = headers[label_column] if label_column else columns[0][1]
        total_row: dict[str, Any] = {header: None for _, header in columns}
        total_row[label_header] = GRAND_TOTAL_LABEL
        total_row[headers[total_column]] = float(sum_amounts(row.get(total_column) for row in rows))
        records.append(total_row)

    df = pd.DataFrame(records, columns=[header for _, header in columns])
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()
