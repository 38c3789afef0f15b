from sqlalchemy import (
    Table, Column, String, Integer, Numeric, Float, Enum, DateTime, JSON, MetaData, CheckConstraint
)
from sqlalchemy.sql import func

from storefront.domain.models import OrderStatus

metadata = MetaData()


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("description", String, nullable=False, default=""),
    Column("category", String, nullable=False, default="", index=True),
    Column("brand", String, nullable=False, default="", index=True),
    Column("price", Numeric(12, 2), nullable=False),
    Column("sale_price", Numeric(12, 2), nullable=True),
    Column("total_stock", Integer, nullable=False, default=0, index=True),
    Column("image", String, nullable=True),
    Column("average_review", Float, nullable=False, default=0.0),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    CheckConstraint("total_stock >= 0", name="ck_products_total_stock_non_negative"),
)


carts_tbl = Table(
    "carts",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, unique=True, index=True),
    Column("items", JSON, nullable=False),
    Column("version", Integer, nullable=False, default=1),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("cart_id", String, nullable=True),
    Column("items", JSON, nullable=False),
    Column("address", JSON, nullable=False),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column("status", Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING, index=True),
    Column("payment_method", String, nullable=False, default="paypal"),
    Column("payment_id", String, nullable=True, index=True),
    Column("payer_id", String, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), index=True),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


outbox_events_tbl = Table(
    "outbox_events",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_type", String, nullable=False),
    Column("event_data", JSON, nullable=False),
    Column("order_id", String, nullable=False),
    Column("status", String, default="pending"),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)
