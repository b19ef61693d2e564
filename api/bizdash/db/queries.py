"""SQL shared by the entity routers: write transactions, line items and surcharges."""

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from decimal import Decimal
from typing import Any
from uuid import uuid4

from fastapi import HTTPException
from sqlalchemy import bindparam, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bizdash.services.totals import TOTAL_EXPONENT, as_amount

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid4().hex


@contextmanager
def write_transaction(db: Session, action: str) -> Iterator[Session]:
    """Commit the block's writes, or roll all of them back.

    ``HTTPException`` passes through untouched. Constraint violations become
    400 and anything else becomes 500; neither exposes driver text.
    """
    try:
        yield db
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        logger.warning("%s rejected by a database constraint", action)
        raise HTTPException(status_code=400, detail=f"{action} failed: conflicting or missing data")
    except Exception:
        db.rollback()
        logger.exception("%s failed", action)
        raise HTTPException(status_code=500, detail=f"{action} failed")


def money_param(value: Any) -> str:
    # Bound as text so SQLite and PostgreSQL both accept it for NUMERIC.
    return str(as_amount(value, TOTAL_EXPONENT))


def replace_line_items(db: Session, parent_kind: str, parent_id: str, lines: Iterable[Mapping[str, Any]]) -> None:
    db.execute(
        text("DELETE FROM line_items WHERE parent_kind = :kind AND parent_id = :parent_id"),
        {"kind": parent_kind, "parent_id": parent_id},
    )
    for position, line in enumerate(lines):
        db.execute(
            text(
                """
                INSERT INTO line_items (
                  parent_kind,
                  parent_id,
                  position,
                  product_name,
                  product_price,
                  quantity,
                  line_total
                )
                VALUES (:kind, :parent_id, :position, :product_name, :product_price, :quantity, :line_total)
                """
            ),
            {
                "kind": parent_kind,
                "parent_id": parent_id,
                "position": position,
                "product_name": line["product_name"],
                "product_price": money_param(line["product_price"]),
                "quantity": line["quantity"],
                "line_total": money_param(line["total"]),
            },
        )


def replace_surcharges(db: Session, parent_kind: str, parent_id: str, surcharges: Mapping[str, Any]) -> None:
    db.execute(
        text("DELETE FROM surcharges WHERE parent_kind = :kind AND parent_id = :parent_id"),
        {"kind": parent_kind, "parent_id": parent_id},
    )
    for name, amount in surcharges.items():
        db.execute(
            text(
                """
                INSERT INTO surcharges (parent_kind, parent_id, name, amount)
                VALUES (:kind, :parent_id, :name, :amount)
                """
            ),
            {"kind": parent_kind, "parent_id": parent_id, "name": name, "amount": money_param(amount)},
        )


def delete_children(db: Session, parent_kind: str, parent_id: str) -> None:
    for table in ("line_items", "surcharges"):
        db.execute(
            text(f"DELETE FROM {table} WHERE parent_kind = :kind AND parent_id = :parent_id"),
            {"kind": parent_kind, "parent_id": parent_id},
        )


def load_line_items(db: Session, parent_kind: str, parent_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
    out: dict[str, list[dict[str, Any]]] = {pid: [] for pid in parent_ids}
    if not parent_ids:
        return out
    rows = db.execute(
        text(
            """
            SELECT parent_id, product_name, product_price, quantity, line_total
            FROM line_items
            WHERE parent_kind = :kind AND parent_id IN :ids
            ORDER BY parent_id, position
            """
        ).bindparams(bindparam("ids", expanding=True)),
        {"kind": parent_kind, "ids": parent_ids},
    ).mappings().all()
    for row in rows:
        out[row["parent_id"]].append(
            {
                "product_name": row["product_name"],
                "product_price": Decimal(str(row["product_price"])),
                "quantity": int(row["quantity"]),
                "total": Decimal(str(row["line_total"])),
            }
        )
    return out


def load_surcharges(db: Session, parent_kind: str, parent_ids: list[str]) -> dict[str, dict[str, Decimal]]:
    out: dict[str, dict[str, Decimal]] = {pid: {} for pid in parent_ids}
    if not parent_ids:
        return out
    rows = db.execute(
        text(
            """
            SELECT parent_id, name, amount
            FROM surcharges
            WHERE parent_kind = :kind AND parent_id IN :ids
            ORDER BY parent_id, id
            """
        ).bindparams(bindparam("ids", expanding=True)),
        {"kind": parent_kind, "ids": parent_ids},
    ).mappings().all()
    for row in rows:
        out[row["parent_id"]][row["name"]] = Decimal(str(row["amount"]))
    return out
