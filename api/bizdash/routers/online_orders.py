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
from bizdash.schemas.online_orders import OnlineOrderRequest, OnlineOrderResponse
from bizdash.services.bills import build_bill
from bizdash.services.deps import get_current_user, get_date_range
from bizdash.services.export import XLSX_MEDIA_TYPE, build_workbook
from bizdash.services.filters import DateRange, SearchableRecord, filter_records

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backend/online-order", tags=["online-orders"])

PARENT_KIND = "online_order"

EXPORT_COLUMNS = [
    ("orderDate", "Order Date"),
    ("customerName", "Customer Name"),
    ("phoneNo", "Phone No"),
    ("area", "Area"),
    ("weight", "Weight"),
    ("courier", "Courier"),
    ("trackingNumber", "Tracking No"),
    ("orderSource", "Source"),
    ("products", "Products"),
    ("totalAmount", "Total Amount"),
]


def load_orders(db: Session, order_id: str | None = None) -> list[dict[str, Any]]:
    sql = """
        SELECT
          id,
          order_date,
          customer_name,
          phone_no,
          area,
          weight,
          courier,
          tracking_number,
          order_source,
          product_total,
          total_amount
        FROM online_orders
    """
    params: dict[str, Any] = {}
    if order_id is not None:
        sql += " WHERE id = :id"
        params["id"] = order_id
    sql += " ORDER BY order_date DESC, created_at DESC"

    rows = db.execute(text(sql), params).mappings().all()
    ids = [row["id"] for row in rows]
    items = load_line_items(db, PARENT_KIND, ids)
    charges = load_surcharges(db, PARENT_KIND, ids)

    orders = []
    for row in rows:
        order = dict(row)
        order["products"] = items[row["id"]]
        order["surcharges"] = charges[row["id"]]
        order["product_total"] = Decimal(str(row["product_total"]))
        order["total_amount"] = Decimal(str(row["total_amount"]))
        orders.append(order)
    return orders


def get_order(db: Session, order_id: str) -> dict[str, Any]:
    found = load_orders(db, order_id)
    if not found:
        raise HTTPException(status_code=404, detail="Order not found")
    return found[0]


def _search_view(order: dict[str, Any]) -> SearchableRecord:
    return SearchableRecord(
        party_name=order["customer_name"],
        date=order["order_date"],
        total=order["total_amount"],
        keywords=(order["phone_no"], order["area"]),
    )


def _save_order(db: Session, order_id: str, payload: OnlineOrderRequest, user_id: str | None, *, create: bool) -> None:
    bill = build_bill(payload.products, payload.surcharges)
    if not bill.lines:
        raise HTTPException(status_code=400, detail="Order has no products with a quantity")

    params = {
        "id": order_id,
        "order_date": payload.order_date.isoformat(),
        "customer_name": payload.customer_name,
        "phone_no": payload.phone_no,
        "area": payload.area,
        "weight": payload.weight,
        "courier": payload.courier,
        "tracking_number": payload.tracking_number,
        "order_source": payload.order_source,
        "product_total": money_param(bill.totals.product_total),
        "total_amount": money_param(bill.totals.final_total),
        "user_id": user_id,
    }
    with write_transaction(db, "Saving order"):
        if create:
            db.execute(
                text(
                    """
                    INSERT INTO online_orders (
                      id,
                      order_date,
                      customer_name,
                      phone_no,
                      area,
                      weight,
                      courier,
                      tracking_number,
                      order_source,
                      product_total,
                      total_amount,
                      created_by_user_id
                    )
                    VALUES (
                      :id,
                      :order_date,
                      :customer_name,
                      :phone_no,
                      :area,
                      :weight,
                      :courier,
                      :tracking_number,
                      :order_source,
                      :product_total,
                      :total_amount,
                      :user_id
                    )
                    """
                ),
                params,
            )
        else:
            db.execute(
                text(
                    """
                    UPDATE online_orders
                    SET order_date = :order_date,
                        customer_name = :customer_name,
                        phone_no = :phone_no,
                        area = :area,
                        weight = :weight,
                        courier = :courier,
                        tracking_number = :tracking_number,
                        order_source = :order_source,
                        product_total = :product_total,
                        total_amount = :total_amount
                    WHERE id = :id
                    """
                ),
                params,
            )
        replace_line_items(db, PARENT_KIND, order_id, bill.lines)
        replace_surcharges(db, PARENT_KIND, order_id, bill.surcharges)

    logger.info("online order %s %s, total %s", order_id, "created" if create else "updated", bill.totals.final_total)


@router.post("", response_model=OnlineOrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OnlineOrderRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    order_id = new_id()
    _save_order(db, order_id, payload, user["id"], create=True)
    return get_order(db, order_id)


@router.get("", response_model=list[OnlineOrderResponse])
def list_orders(
    search: str = Query(default=""),
    date_range: DateRange | None = Depends(get_date_range),
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    return filter_records(load_orders(db), search, date_range, key=_search_view)


@router.post("/export")
def export_orders(
    body: ExportRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    rows = body.payload or [
        OnlineOrderResponse.model_validate(order).model_dump(mode="json", by_alias=True)
        for order in load_orders(db)
    ]
    content = build_workbook(rows, EXPORT_COLUMNS, sheet_name="Orders")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=Orders.xlsx"},
    )


@router.get("/{order_id}", response_model=OnlineOrderResponse)
def read_order(
    order_id: str,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    return get_order(db, order_id)


@router.put("/{order_id}/edit", response_model=OnlineOrderResponse)
def update_order(
    order_id: str,
    payload: OnlineOrderRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    get_order(db, order_id)
    _save_order(db, order_id, payload, user["id"], create=False)
    return get_order(db, order_id)


@router.delete("/{order_id}/delete")
def delete_order(
    order_id: str,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    get_order(db, order_id)
    with write_transaction(db, "Deleting order"):
        delete_children(db, PARENT_KIND, order_id)
        db.execute(text("DELETE FROM online_orders WHERE id = :id"), {"id": order_id})
    logger.info("online order %s deleted", order_id)
    return {"ok": True, "id": order_id}
