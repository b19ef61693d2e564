from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from bizdash.services.totals import as_amount, as_quantity


def _none_as_empty(value: Any) -> Any:
    return {} if value is None else value


# Prices, quantities and charges coming from the bill forms are coerced, not
# rejected: anything unusable counts as zero. A null surcharge map is empty.
Amount = Annotated[
    Decimal,
    BeforeValidator(as_amount),
    PlainSerializer(float, return_type=float, when_used="json"),
]
Quantity = Annotated[int, BeforeValidator(as_quantity)]
Surcharges = Annotated[dict[str, Amount], BeforeValidator(_none_as_empty)]
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LineItemInput(CamelModel):
    product_name: str = Field(min_length=1, max_length=250)
    product_price: Amount = Decimal("0")
    quantity: Quantity = 0


class LineItemOut(CamelModel):
    product_name: str
    product_price: Money
    quantity: int
    total: Money


class ExportRequest(BaseModel):
    payload: list[dict[str, Any]] = Field(default_factory=list)
