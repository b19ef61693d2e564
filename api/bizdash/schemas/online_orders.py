from datetime import date
from typing import Literal

from pydantic import Field

from bizdash.schemas.common import CamelModel, LineItemInput, LineItemOut, Money, Surcharges

OrderSource = Literal["Website", "WhatsApp", "App", "Manual"]


class OnlineOrderRequest(CamelModel):
    order_date: date
    customer_name: str = Field(min_length=1, max_length=250)
    phone_no: str = Field(min_length=1, max_length=32)
    area: str = Field(min_length=1)
    weight: str | None = Field(default=None, max_length=50)
    courier: str | None = Field(default=None, max_length=100)
    tracking_number: str | None = Field(default=None, max_length=100)
    order_source: OrderSource | None = None
    products: list[LineItemInput] = Field(default_factory=list)
    surcharges: Surcharges = Field(default_factory=dict)


class OnlineOrderResponse(CamelModel):
    id: str
    order_date: date
    customer_name: str
    phone_no: str
    area: str
    weight: str | None
    courier: str | None
    tracking_number: str | None
    order_source: str | None
    products: list[LineItemOut]
    surcharges: dict[str, Money]
    product_total: Money
    total_amount: Money
