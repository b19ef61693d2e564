"""Table definitions.

Routes talk to these tables with raw ``text()`` SQL; the Core metadata here
exists so the schema can be created on PostgreSQL and SQLite alike.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    BigInteger,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.engine import Engine

metadata = MetaData()

# Unscaled so stored amounts keep every decimal place the totals carry.
MONEY = Numeric()

users = Table(
    "users",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("username", String(150), nullable=False, unique=True),
    Column("email", String(254), nullable=False, unique=True),
    Column("mobile_no", String(32)),
    Column("password_hash", String(200), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("last_login_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

dealers = Table(
    "dealers",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("dealer_name", String(250), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

dealer_products = Table(
    "dealer_products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("dealer_id", String(32), ForeignKey("dealers.id", ondelete="CASCADE"), nullable=False),
    Column("position", Integer, nullable=False),
    Column("product_name", String(250), nullable=False),
    Column("product_price", MONEY, nullable=False),
)

sales = Table(
    "sales",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("sale_date", Date, nullable=False),
    Column("dealer_id", String(32), ForeignKey("dealers.id"), nullable=False),
    Column("product_total", MONEY, nullable=False),
    Column("total_amount", MONEY, nullable=False),
    Column("created_by_user_id", String(32), ForeignKey("users.id")),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

online_orders = Table(
    "online_orders",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("order_date", Date, nullable=False),
    Column("customer_name", String(250), nullable=False),
    Column("phone_no", String(32), nullable=False),
    Column("area", Text, nullable=False),
    Column("weight", String(50)),
    Column("courier", String(100)),
    Column("tracking_number", String(100)),
    Column("order_source", String(20)),
    Column("product_total", MONEY, nullable=False),
    Column("total_amount", MONEY, nullable=False),
    Column("created_by_user_id", String(32), ForeignKey("users.id")),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

# Line items and surcharges of both sales and online orders. ``parent_kind``
# is either "sale" or "online_order".
line_items = Table(
    "line_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("parent_kind", String(20), nullable=False, index=True),
    Column("parent_id", String(32), nullable=False, index=True),
    Column("position", Integer, nullable=False),
    Column("product_name", String(250), nullable=False),
    Column("product_price", MONEY, nullable=False),
    Column("quantity", BigInteger, nullable=False),
    Column("line_total", MONEY, nullable=False),
)

surcharges = Table(
    "surcharges",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("parent_kind", String(20), nullable=False, index=True),
    Column("parent_id", String(32), nullable=False, index=True),
    Column("name", String(50), nullable=False),
    Column("amount", MONEY, nullable=False),
)

payments = Table(
    "payments",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("order_date", Date, nullable=False),
    Column("dealer_id", String(32), ForeignKey("dealers.id"), nullable=False),
    Column("total_amount", MONEY, nullable=False),
    Column("payment_mode", String(10), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

expenses = Table(
    "expenses",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("expense_date", Date, nullable=False),
    Column("description", Text, nullable=False),
    Column("amount", MONEY, nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)


def init_db(engine: Engine) -> None:
    metadata.create_all(engine)
