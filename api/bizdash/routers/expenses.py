import logging
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from bizdash.db.queries import money_param, new_id, write_transaction
from bizdash.db.session import get_db
from bizdash.schemas.common import ExportRequest
from bizdash.schemas.expenses import ExpenseListResponse, ExpenseRequest, ExpenseResponse
from bizdash.services.deps import get_current_user, get_date_range
from bizdash.services.export import XLSX_MEDIA_TYPE, build_workbook
from bizdash.services.filters import DateRange, SearchableRecord, filter_records
from bizdash.services.totals import sum_amounts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backend/expenses", tags=["expenses"])

EXPORT_COLUMNS = [
    ("date", "Date"),
    ("desc", "Description"),
    ("amount", "Amount"),
]


def load_expenses(db: Session, expense_id: str | None = None) -> list[dict[str, Any]]:
    sql = "SELECT id, expense_date, description, amount FROM expenses"
    params: dict[str, Any] = {}
    if expense_id is not None:
        sql += " WHERE id = :id"
        params["id"] = expense_id
    sql += " ORDER BY expense_date DESC, created_at DESC"

    rows = db.execute(text(sql), params).mappings().all()
    return [
        {
            "id": row["id"],
            "date": row["expense_date"],
            "desc": row["description"],
            "amount": Decimal(str(row["amount"])),
        }
        for row in rows
    ]


def get_expense(db: Session, expense_id: str) -> dict[str, Any]:
    found = load_expenses(db, expense_id)
    if not found:
        raise HTTPException(status_code=404, detail="Expense not found")
    return found[0]


def _params(expense_id: str, payload: ExpenseRequest) -> dict[str, Any]:
    return {
        "id": expense_id,
        "expense_date": payload.date.isoformat(),
        "description": payload.desc,
        "amount": money_param(payload.amount),
    }


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
def create_expense(
    payload: ExpenseRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    expense_id = new_id()
    with write_transaction(db, "Adding expense"):
        db.execute(
            text(
                """
                INSERT INTO expenses (id, expense_date, description, amount)
                VALUES (:id, :expense_date, :description, :amount)
                """
            ),
            _params(expense_id, payload),
        )
    logger.info("expense %s of %s recorded", expense_id, payload.amount)
    return get_expense(db, expense_id)


@router.get("", response_model=ExpenseListResponse)
def list_expenses(
    search: str = Query(default=""),
    date_range: DateRange | None = Depends(get_date_range),
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    data = filter_records(
        load_expenses(db),
        search,
        date_range,
        key=lambda e: SearchableRecord(party_name=e["desc"], date=e["date"], total=e["amount"]),
    )
    return ExpenseListResponse(data=data, grand_total=sum_amounts(e["amount"] for e in data))


@router.post("/export")
def export_expenses(
    body: ExportRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    rows = body.payload or [
        ExpenseResponse.model_validate(e).model_dump(mode="json", by_alias=True) for e in load_expenses(db)
    ]
    content = build_workbook(rows, EXPORT_COLUMNS, sheet_name="Expenses", total_column="amount", label_column="desc")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=Expenses.xlsx"},
    )


@router.get("/{expense_id}", response_model=ExpenseResponse)
def read_expense(
    expense_id: str,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    return get_expense(db, expense_id)


@router.put("/{expense_id}/edit", response_model=ExpenseResponse)
def update_expense(
    expense_id: str,
    payload: ExpenseRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    get_expense(db, expense_id)
    with write_transaction(db, "Updating expense"):
        db.execute(
            text(
                """
                UPDATE expenses
                SET expense_date = :expense_date,
                    description = :description,
                    amount = :amount
                WHERE id = :id
                """
            ),
            _params(expense_id, payload),
        )
    logger.info("expense %s updated", expense_id)
    return get_expense(db, expense_id)


@router.delete("/{expense_id}/delete")
def delete_expense(
    expense_id: str,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    get_expense(db, expense_id)
    with write_transaction(db, "Deleting expense"):
        db.execute(text("DELETE FROM expenses WHERE id = :id"), {"id": expense_id})
    logger.info("expense %s deleted", expense_id)
    return {"ok": True, "id": expense_id}
