from datetime import date
from decimal import Decimal

from pydantic import Field

from bizdash.schemas.common import CamelModel, Money


class ExpenseRequest(CamelModel):
    date: date
    desc: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)


class ExpenseResponse(CamelModel):
    id: str
    date: date
    desc: str
    amount: Money


class ExpenseListResponse(CamelModel):
    data: list[ExpenseResponse]
    grand_total: Money
