# marketplace/schemas/product.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

ProductCategory = Literal[
    "Electronics",
    "Cameras",
    "Laptops",
    "Accessories",
    "Headphones",
    "Food",
    "Books",
    "Clothes/Shoes",
    "Beauty/Health",
    "Sports",
    "Outdoor",
    "Home",
]


class ProductCreate(SQLModel):
    """
    Payload for creating a product (admin).
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    description: str = ""
    seller: str = Field(default="", max_length=100)
    category: ProductCategory
    price: float = Field(ge=0)
    stock_on_hand: int = Field(default=0, ge=0)
    sku: str | None = Field(default=None, max_length=64)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("sku")
    @classmethod
    def blank_sku_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip() or None


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.
    All fields are optional; only `sku` may be sent as null (clears it).
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    seller: str | None = Field(default=None, max_length=100)
    category: ProductCategory | None = None
    price: float | None = Field(default=None, ge=0)
    stock_on_hand: int | None = Field(default=None, ge=0)
    sku: str | None = Field(default=None, max_length=64)

    @field_validator("description", "seller", "category", "price", "stock_on_hand")
    @classmethod
    def not_null(cls, v):
        # Omitted fields skip validation; only an explicit null lands here.
        if v is None:
            raise ValueError("field cannot be null")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            raise ValueError("name cannot be null")
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("sku")
    @classmethod
    def blank_sku_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip() or None


class ProductRead(SQLModel):
    """
    Product representation for clients.
    """

    id: uuid.UUID
    name: str
    description: str
    seller: str
    category: str
    price: float
    stock_on_hand: int
    image_url: str | None = None
    average_rating: float
    num_reviews: int
    sku: str | None = None
    created_by: uuid.UUID | None = None
    created_at: datetime


class ProductPage(SQLModel):
    """
    One page of a product search.
    """

    products: list[ProductRead]
    page: int
    pages: int


class ReviewCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    rating: int = Field(ge=1, le=5)
    comment: str

    @field_validator("comment")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("comment cannot be empty")
        return v


class ReviewRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    user_id: uuid.UUID
    name: str
    rating: int
    comment: str
    created_at: datetime
