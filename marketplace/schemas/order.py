# marketplace/schemas/order.py
import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class ShippingAddress(SQLModel):
    model_config = ConfigDict(extra="forbid")

    address: str
    city: str
    postal_code: str
    country: str

    @field_validator("address", "city", "postal_code", "country")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class OrderItemCreate(SQLModel):
    product_id: uuid.UUID
    quantity: int = Field(gt=0)


class OrderCreate(SQLModel):
    """
    Payload for placing an order.

    User provides:
      - items (optional): explicit {product_id, quantity} list;
        when omitted the current cart is checked out
      - shipping_address
      - payment_method
      - tax_price / shipping_price (computed by the client)

    Backend derives:
      - user_id from token
      - unit prices from the catalog
      - items_price / total_price
    """

    model_config = ConfigDict(extra="forbid")

    items: list[OrderItemCreate] | None = None
    shipping_address: ShippingAddress
    payment_method: str
    tax_price: float = Field(default=0.0, ge=0)
    shipping_price: float = Field(default=0.0, ge=0)

    @field_validator("payment_method")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("payment_method cannot be empty")
        return v


class Payer(SQLModel):
    email_address: str | None = None


class PaymentResult(SQLModel):
    """
    Payment confirmation forwarded by the client from the payment provider.
    Stored as-is; not verified here.
    """

    id: str
    status: str
    update_time: str | None = None
    payer: Payer = Field(default_factory=Payer)


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    name: str
    quantity: int
    unit_price: float
    line_total: float


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    user_id: uuid.UUID
    shipping_address: ShippingAddress
    payment_method: str
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    is_paid: bool
    paid_at: datetime | None
    payment_result: dict[str, Any] | None
    is_delivered: bool
    delivered_at: datetime | None
    created_at: datetime


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]
