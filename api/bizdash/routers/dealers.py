import logging
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from bizdash.db.queries import money_param, new_id, write_transaction
from bizdash.db.session import get_db
from bizdash.schemas.dealers import DealerRequest, DealerResponse
from bizdash.services.deps import get_current_user
from bizdash.services.filters import SearchableRecord, filter_records

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backend/dealers", tags=["dealers"])


def get_dealer(db: Session, dealer_id: str) -> dict[str, Any] | None:
    dealer = db.execute(
        text("SELECT id, dealer_name FROM dealers WHERE id = :id"),
        {"id": dealer_id},
    ).mappings().first()
    if not dealer:
        return None

    products = db.execute(
        text(
            """
            SELECT product_name, product_price
            FROM dealer_products
            WHERE dealer_id = :id
            ORDER BY position
            """
        ),
        {"id": dealer_id},
    ).mappings().all()

    return {
        "id": dealer["id"],
        "dealer_name": dealer["dealer_name"],
        "products": [
            {"product_name": p["product_name"], "product_price": Decimal(str(p["product_price"]))}
            for p in products
        ],
    }


def _write_products(db: Session, dealer_id: str, payload: DealerRequest) -> None:
    db.execute(text("DELETE FROM dealer_products WHERE dealer_id = :id"), {"id": dealer_id})
    for position, product in enumerate(payload.products):
        db.execute(
            text(
                """
                INSERT INTO dealer_products (dealer_id, position, product_name, product_price)
                VALUES (:dealer_id, :position, :product_name, :product_price)
                """
            ),
            {
                "dealer_id": dealer_id,
                "position": position,
                "product_name": product.product_name,
                "product_price": money_param(product.product_price),
            },
        )


@router.post("", response_model=DealerResponse, status_code=status.HTTP_201_CREATED)
def create_dealer(
    payload: DealerRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    dealer_id = new_id()
    with write_transaction(db, "Adding dealer"):
        db.execute(
            text("INSERT INTO dealers (id, dealer_name) VALUES (:id, :dealer_name)"),
            {"id": dealer_id, "dealer_name": payload.dealer_name},
        )
        _write_products(db, dealer_id, payload)

    logger.info("dealer %s created (%d products)", dealer_id, len(payload.products))
    return get_dealer(db, dealer_id)


@router.get("", response_model=list[DealerResponse])
def list_dealers(
    search: str = Query(default=""),
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    ids = db.execute(text("SELECT id FROM dealers ORDER BY dealer_name ASC")).scalars().all()
    dealers = [get_dealer(db, dealer_id) for dealer_id in ids]
    return filter_records(
        dealers,
        search,
        key=lambda d: SearchableRecord(party_name=d["dealer_name"], date=None),
    )


@router.get("/{dealer_id}", response_model=DealerResponse)
def read_dealer(
    dealer_id: str,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    dealer = get_dealer(db, dealer_id)
    if not dealer:
        raise HTTPException(status_code=404, detail="Dealer not found")
    return dealer


@router.put("/{dealer_id}/edit", response_model=DealerResponse)
def update_dealer(
    dealer_id: str,
    payload: DealerRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    if not get_dealer(db, dealer_id):
        raise HTTPException(status_code=404, detail="Dealer not found")

    with write_transaction(db, "Updating dealer"):
        db.execute(
            text("UPDATE dealers SET dealer_name = :dealer_name WHERE id = :id"),
            {"id": dealer_id, "dealer_name": payload.dealer_name},
        )
        _write_products(db, dealer_id, payload)

    logger.info("dealer %s updated", dealer_id)
    return get_dealer(db, dealer_id)


@router.delete("/{dealer_id}/delete")
def delete_dealer(
    dealer_id: str,
    db: Session = Depends(get_db),
    _: dict = Depends(get_current_user),
):
    if not get_dealer(db, dealer_id):
        raise HTTPException(status_code=404, detail="Dealer not found")

    in_use = db.execute(
        text(
            """
            SELECT
              (SELECT COUNT(*) FROM sales WHERE dealer_id = :id) +
              (SELECT COUNT(*) FROM payments WHERE dealer_id = :id) AS refs
            """
        ),
        {"id": dealer_id},
    ).scalar_one()
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Dealer has sales or payments and cannot be deleted",
        )

    with write_transaction(db, "Deleting dealer"):
        db.execute(text("DELETE FROM dealer_products WHERE dealer_id = :id"), {"id": dealer_id})
        db.execute(text("DELETE FROM dealers WHERE id = :id"), {"id": dealer_id})
    logger.info("dealer %s deleted", dealer_id)
    return {"ok": True, "id": dealer_id}
