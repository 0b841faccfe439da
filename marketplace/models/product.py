# marketplace/models/product.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalog entry.

    `average_rating` and `num_reviews` are derived from ProductReview rows
    and recomputed whenever a review is added.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=100,
        index=True,
        description="Display name of the product",
    )

    description: str = Field(default="")

    seller: str = Field(default="", max_length=100)

    category: str = Field(
        max_length=50,
        index=True,
        description="One of the fixed catalog categories",
    )

    price: float = Field(
        ge=0,
        description="Unit price",
    )

    stock_on_hand: int = Field(
        default=0,
        ge=0,
        description="How many units currently in stock",
    )

    # Blob store handle of the product image
    image_id: str | None = None
    image_url: str | None = None

    average_rating: float = Field(default=0.0, index=True)
    num_reviews: int = Field(default=0)

    sku: str | None = Field(
        default=None,
        max_length=64,
        unique=True,
        description="Stock-keeping code; several products may leave it unset",
    )

    created_by: uuid.UUID | None = Field(
        default=None,
        foreign_key="users.id",
        description="Admin who created the product",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class ProductReview(SQLModel, table=True):
    """
    A user's review of a product. One review per (product, user).
    """

    __tablename__ = "product_reviews"
    __table_args__ = (UniqueConstraint("product_id", "user_id"),)

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    name: str = Field(description="Reviewer display name at review time")

    rating: int = Field(ge=1, le=5)

    comment: str

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
