# marketplace/models/order.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order.

    Line items and totals are written once at checkout; afterwards only
    the paid / delivered status fields change.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # Shipping address
    address: str
    city: str
    postal_code: str
    country: str

    payment_method: str

    items_price: float = Field(description="Sum of quantity * unit_price")
    tax_price: float = Field(default=0.0)
    shipping_price: float = Field(default=0.0)
    total_price: float = Field(description="items + tax + shipping")

    is_paid: bool = Field(default=False, index=True)
    paid_at: datetime | None = None
    payment_result: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON),
        description="Opaque payment confirmation from the payment provider",
    )

    is_delivered: bool = Field(default=False, index=True)
    delivered_at: datetime | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order: a copy of the product at checkout time.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    # No FK: the line must survive deletion of the product it copied.
    product_id: uuid.UUID = Field(index=True)

    name: str

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    unit_price: float = Field(
        description="Unit price at time of order",
    )
