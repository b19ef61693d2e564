from datetime import date

from pydantic import Field

from bizdash.schemas.common import CamelModel, LineItemInput, LineItemOut, Money, Surcharges


class SaleRequest(CamelModel):
    date: date
    dealer_id: str
    products: list[LineItemInput] = Field(default_factory=list)
    surcharges: Surcharges = Field(default_factory=dict)


class QuoteRequest(CamelModel):
    products: list[LineItemInput] = Field(default_factory=list)
    surcharges: Surcharges = Field(default_factory=dict)


class QuoteResponse(CamelModel):
    products: list[LineItemOut]
    product_total: Money
    surcharge_total: Money
    total_amount: Money


class DealerRef(CamelModel):
    id: str
    dealer_name: str


class SaleResponse(CamelModel):
    id: str
    date: date
    dealer: DealerRef
    dealer_name: str
    products: list[LineItemOut]
    surcharges: dict[str, Money]
    product_total: Money
    total_amount: Money
