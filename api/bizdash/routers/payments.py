import logging
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from bizdash.db.queries import money_param, new_id, write_transaction
from bizdash.db.session import get_db
from bizdash.schemas.common import ExportRequest
from bizdash.schemas.payments import PaymentRequest, PaymentResponse
from bizdash.services.dashboard import UNKNOWN_DEALER
from bizdash.services.deps import get_current_user, get_date_range
from bizdash.services.export import XLSX_MEDIA_TYPE, build_workbook
from bizdash.services.filters import DateRange, SearchableRecord, filter_records

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backend/payments", tags=["payments"])

EXPORT_COLUMNS = [
    ("orderDate", "Date"),
    ("dealerName", "Dealer"),
    ("paymentMode", "Payment Mode"),
    ("totalAmount", "Amount"),
]


def load_payments(db: Session, payment_id: str | None = None) -> list[dict[str, Any]]:
    sql = """
        SELECT
          p.id,
          p.order_date,
          p.dealer_id,
          d.dealer_name,
          p.total_amount,
          p.payment_mode
        FROM payments p
        LEFT JOIN dealers d ON d.id = p.dealer_id
    """
    params: dict[str, Any] = {}
    if payment_id is not None:
        sql += " WHERE p.id = :id"
        params["id"] = payment_id
    sql += " ORDER BY p.order_date DESC, p.created_at DESC"

    rows = db.execute(text(sql), params).mappings().all()
    return [
        {
            **row,
            "dealer_name": row["dealer_name"] or UNKNOWN_DEALER,
            "total_amount": Decimal(str(row["total_amount"])),
        }
        for row in rows
    ]


def get_payment(db: Session, payment_id: str) -> dict[str, Any]:
    found = load_payments(db, payment_id)
    if not found:
        raise HTTPException(status_code=404, detail="Payment not found")
    return found[0]


def _check_dealer(db: Session, dealer_id: str) -> None:
    dealer = db.execute(text("SELECT id FROM dealers WHERE id = :id"), {"id": dealer_id}).first()
    if not dealer:
        raise HTTPException(status_code=404, detail="Dealer not found")


def _params(payment_id: str, payload: PaymentRequest) -> dict[str, Any]:
    return {
        "id": payment_id,
        "order_date": payload.order_date.isoformat(),
        "dealer_id": payload.dealer_id,
        "total_amount": money_param(payload.total_amount),
        "payment_mode": payload.payment_mode,
    }


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: PaymentRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    _check_dealer(db, payload.dealer_id)
    payment_id = new_id()
    with write_transaction(db, "Adding payment"):
        db.execute(
            text(
                """
                INSERT INTO payments (id, order_date, dealer_id, total_amount, payment_mode)
                VALUES (:id, :order_date, :dealer_id, :total_amount, :payment_mode)
                """
            ),
            _params(payment_id, payload),
        )
    logger.info("payment %s of %s to dealer %s", payment_id, payload.total_amount, payload.dealer_id)
    return get_payment(db, payment_id)


@router.get("", response_model=list[PaymentResponse])
def list_payments(
    search: str = Query(default=""),
    date_range: DateRange | None = Depends(get_date_range),
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    return filter_records(
        load_payments(db),
        search,
        date_range,
        key=lambda p: SearchableRecord(
            party_name=p["dealer_name"],
            date=p["order_date"],
            total=p["total_amount"],
            keywords=(p["payment_mode"],),
        ),
    )


@router.post("/export")
def export_payments(
    body: ExportRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    rows = body.payload or [
        PaymentResponse.model_validate(p).model_dump(mode="json", by_alias=True) for p in load_payments(db)
    ]
    content = build_workbook(
        rows,
        EXPORT_COLUMNS,
        sheet_name="Payments",
        total_column="totalAmount",
        label_column="dealerName",
    )
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=Payments.xlsx"},
    )


@router.get("/{payment_id}", response_model=PaymentResponse)
def read_payment(
    payment_id: str,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    return get_payment(db, payment_id)


@router.put("/{payment_id}/edit", response_model=PaymentResponse)
def update_payment(
    payment_id: str,
    payload: PaymentRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    get_payment(db, payment_id)
    _check_dealer(db, payload.dealer_id)
    with write_transaction(db, "Updating payment"):
        db.execute(
            text(
                """
                UPDATE payments
                SET order_date = :order_date,
                    dealer_id = :dealer_id,
                    total_amount = :total_amount,
                    payment_mode = :payment_mode
                WHERE id = :id
                """
            ),
            _params(payment_id, payload),
        )
    logger.info("payment %s updated", payment_id)
    return get_payment(db, payment_id)


@router.delete("/{payment_id}/delete")
def delete_payment(
    payment_id: str,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    get_payment(db, payment_id)
    with write_transaction(db, "Deleting payment"):
        db.execute(text("DELETE FROM payments WHERE id = :id"), {"id": payment_id})
    logger.info("payment %s deleted", payment_id)
    return {"ok": True, "id": payment_id}
