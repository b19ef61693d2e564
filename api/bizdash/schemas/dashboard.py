from bizdash.schemas.common import CamelModel, Money


class MonthlySales(CamelModel):
    month: str
    sales: Money


class DealerSalesShare(CamelModel):
    dealer: str
    sales: Money
    percentage: float
