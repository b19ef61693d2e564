from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import Field

from bizdash.schemas.common import CamelModel, Money

PaymentMode = Literal["cash", "bank", "upi"]


class PaymentRequest(CamelModel):
    order_date: date
    dealer_id: str
    total_amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    payment_mode: PaymentMode


class PaymentResponse(CamelModel):
    id: str
    order_date: date
    dealer_id: str
    dealer_name: str
    total_amount: Money
    payment_mode: str
