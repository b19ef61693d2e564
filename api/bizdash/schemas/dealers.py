from pydantic import Field

from bizdash.schemas.common import Amount, CamelModel, Money


class DealerProduct(CamelModel):
    product_name: str = Field(min_length=1, max_length=250)
    product_price: Amount


class DealerProductOut(CamelModel):
    product_name: str
    product_price: Money


class DealerRequest(CamelModel):
    dealer_name: str = Field(min_length=1, max_length=250)
    products: list[DealerProduct] = Field(default_factory=list)


class DealerResponse(CamelModel):
    id: str
    dealer_name: str
    products: list[DealerProductOut]
