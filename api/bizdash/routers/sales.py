import logging
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from bizdash.db.queries import (
    delete_children,
    load_line_items,
    load_surcharges,
    money_param,
    new_id,
    replace_line_items,
    replace_surcharges,
    write_transaction,
)
from bizdash.db.session import get_db
from bizdash.schemas.common import ExportRequest
from bizdash.schemas.sales import QuoteRequest, QuoteResponse, SaleRequest, SaleResponse
from bizdash.services.bills import build_bill
from bizdash.services.dashboard import UNKNOWN_DEALER
from bizdash.services.deps import get_current_user, get_date_range
from bizdash.services.export import XLSX_MEDIA_TYPE, build_workbook
from bizdash.services.filters import DateRange, SearchableRecord, filter_records

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backend/sales", tags=["sales"])

PARENT_KIND = "sale"

EXPORT_COLUMNS = [
    ("date", "Date"),
    ("dealerName", "Dealer"),
    ("products", "Products"),
    ("productTotal", "Product Total"),
    ("surcharges", "Surcharges"),
    ("totalAmount", "Total Amount"),
]


def load_sales(db: Session, sale_id: str | None = None) -> list[dict[str, Any]]:
    sql = """
        SELECT
          s.id,
          s.sale_date,
          s.dealer_id,
          d.dealer_name,
          s.product_total,
          s.total_amount
        FROM sales s
        LEFT JOIN dealers d ON d.id = s.dealer_id
    """
    params: dict[str, Any] = {}
    if sale_id is not None:
        sql += " WHERE s.id = :id"
        params["id"] = sale_id
    sql += " ORDER BY s.sale_date DESC, s.created_at DESC"

    rows = db.execute(text(sql), params).mappings().all()
    ids = [row["id"] for row in rows]
    items = load_line_items(db, PARENT_KIND, ids)
    charges = load_surcharges(db, PARENT_KIND, ids)

    return [
        {
            "id": row["id"],
            "date": row["sale_date"],
            "dealer": {"id": row["dealer_id"], "dealer_name": row["dealer_name"] or UNKNOWN_DEALER},
            "dealer_name": row["dealer_name"] or UNKNOWN_DEALER,
            "products": items[row["id"]],
            "surcharges": charges[row["id"]],
            "product_total": Decimal(str(row["product_total"])),
            "total_amount": Decimal(str(row["total_amount"])),
        }
        for row in rows
    ]


def get_sale(db: Session, sale_id: str) -> dict[str, Any]:
    found = load_sales(db, sale_id)
    if not found:
        raise HTTPException(status_code=404, detail="Sale not found")
    return found[0]


def _search_view(sale: dict[str, Any]) -> SearchableRecord:
    return SearchableRecord(party_name=sale["dealer_name"], date=sale["date"], total=sale["total_amount"])


def _save_sale(db: Session, sale_id: str, payload: SaleRequest, user_id: str | None, *, create: bool) -> None:
    dealer = db.execute(
        text("SELECT id FROM dealers WHERE id = :id"),
        {"id": payload.dealer_id},
    ).mappings().first()
    if not dealer:
        raise HTTPException(status_code=404, detail="Dealer not found")

    bill = build_bill(payload.products, payload.surcharges)
    if not bill.lines:
        raise HTTPException(status_code=400, detail="Sale has no products with a quantity")

    params = {
        "id": sale_id,
        "sale_date": payload.date.isoformat(),
        "dealer_id": payload.dealer_id,
        "product_total": money_param(bill.totals.product_total),
        "total_amount": money_param(bill.totals.final_total),
        "user_id": user_id,
    }
    with write_transaction(db, "Saving sale"):
        if create:
            db.execute(
                text(
                    """
                    INSERT INTO sales (
                      id,
                      sale_date,
                      dealer_id,
                      product_total,
                      total_amount,
                      created_by_user_id
                    )
                    VALUES (:id, :sale_date, :dealer_id, :product_total, :total_amount, :user_id)
                    """
                ),
                params,
            )
        else:
            db.execute(
                text(
                    """
                    UPDATE sales
                    SET sale_date = :sale_date,
                        dealer_id = :dealer_id,
                        product_total = :product_total,
                        total_amount = :total_amount
                    WHERE id = :id
                    """
                ),
                params,
            )
        replace_line_items(db, PARENT_KIND, sale_id, bill.lines)
        replace_surcharges(db, PARENT_KIND, sale_id, bill.surcharges)

    logger.info(
        "sale %s %s: %d lines, total %s",
        sale_id,
        "created" if create else "updated",
        len(bill.lines),
        bill.totals.final_total,
    )


@router.post("/quote", response_model=QuoteResponse)
def quote_sale(
    payload: QuoteRequest,
    _: dict = Depends(get_current_user),
):
    bill = build_bill(payload.products, payload.surcharges, drop_empty=False)
    return QuoteResponse(
        products=bill.lines,
        product_total=bill.totals.product_total,
        surcharge_total=bill.totals.surcharge_total,
        total_amount=bill.totals.final_total,
    )


@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
def create_sale(
    payload: SaleRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    sale_id = new_id()
    _save_sale(db, sale_id, payload, user["id"], create=True)
    return get_sale(db, sale_id)


@router.get("", response_model=list[SaleResponse])
def list_sales(
    search: str = Query(default=""),
    date_range: DateRange | None = Depends(get_date_range),
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    return filter_records(load_sales(db), search, date_range, key=_search_view)


@router.post("/export")
def export_sales(
    body: ExportRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    rows = body.payload or [
        SaleResponse.model_validate(sale).model_dump(mode="json", by_alias=True) for sale in load_sales(db)
    ]
    content = build_workbook(rows, EXPORT_COLUMNS, sheet_name="Sales", total_column="totalAmount")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=Sales.xlsx"},
    )


@router.get("/{sale_id}", response_model=SaleResponse)
def read_sale(
    sale_id: str,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    return get_sale(db, sale_id)


@router.put("/{sale_id}/edit", response_model=SaleResponse)
def update_sale(
    sale_id: str,
    payload: SaleRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    get_sale(db, sale_id)
    _save_sale(db, sale_id, payload, user["id"], create=False)
    return get_sale(db, sale_id)


@router.delete("/{sale_id}/delete")
def delete_sale(
    sale_id: str,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    get_sale(db, sale_id)
    with write_transaction(db, "Deleting sale"):
        delete_children(db, PARENT_KIND, sale_id)
        db.execute(text("DELETE FROM sales WHERE id = :id"), {"id": sale_id})
    logger.info("sale %s deleted", sale_id)
    return {"ok": True, "id": sale_id}
