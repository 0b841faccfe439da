# marketplace/services/product_service.py
import logging
import math
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from marketplace.core.errors import AlreadyReviewed, InvalidRequest, NotFound
from marketplace.core.storage_utils import upload_blob, delete_blob
from marketplace.models.product import Product, ProductReview
from marketplace.models.user import User
from marketplace.repositories.cart_repo import CartRepository
from marketplace.repositories.product_repo import ProductRepository
from marketplace.schemas.product import (
    ProductCreate,
    ProductPage,
    ProductRead,
    ProductUpdate,
    ReviewCreate,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
TOP_RATED_LIMIT = 3

# --- Image config ---

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


class ProductService:
    """
    Business logic for the catalog.

    Responsibilities:
      - keyword search with fixed-size pages
      - image upload/delete orchestration with the blob store
      - reviews and the average rating aggregate
      - admin-only operations (enforced at router via require_admin)
    """

    def __init__(self, repo: ProductRepository, cart_repo: CartRepository):
        self.repo = repo
        self.cart_repo = cart_repo

    # ----- Helpers -----

    @staticmethod
    def _validate_and_get_ext(content_type: str, file_bytes: bytes) -> str:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise InvalidRequest("Unsupported image type. Allowed: JPEG, PNG, WEBP.")

        if len(file_bytes) > MAX_IMAGE_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Image too large (max 5MB).",
            )

        return ALLOWED_IMAGE_CONTENT_TYPES[content_type]

    @staticmethod
    def _discard_blob(blob_id: str | None) -> None:
        """Best-effort removal of a blob that is no longer referenced."""
        if not blob_id:
            return
        try:
            delete_blob(blob_id)
        except Exception:
            logger.warning("Could not delete blob %s", blob_id, exc_info=True)

    # ----- Products -----

    def search_products(
        self,
        session: Session,
        keyword: str | None = None,
        page: int = 1,
    ) -> ProductPage:
        """
        Case-insensitive name search, PAGE_SIZE products per page.

        `pages` is ceil(matches / PAGE_SIZE); page numbers below 1 read as 1.
        """
        page = max(page, 1)
        keyword = keyword.strip() if keyword else None

        count = self.repo.count(session, keyword)
        products = self.repo.search(
            session,
            keyword,
            skip=PAGE_SIZE * (page - 1),
            limit=PAGE_SIZE,
        )
        return ProductPage(
            products=[ProductRead.model_validate(p) for p in products],
            page=page,
            pages=math.ceil(count / PAGE_SIZE),
        )

    def top_products(self, session: Session) -> list[Product]:
        return self.repo.top_rated(session, limit=TOP_RATED_LIMIT)

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise NotFound("Product not found")
        return product

    def _ensure_sku_free(
        self,
        session: Session,
        sku: str | None,
        product_id: uuid.UUID | None = None,
    ) -> None:
        if not sku:
            return
        existing = self.repo.get_by_sku(session, sku)
        if existing and existing.id != product_id:
            raise InvalidRequest("SKU already in use")

    def _save(self, session: Session, product: Product, write) -> Product:
        try:
            return write(session, product)
        except IntegrityError:
            # Lost a race against a concurrent write of the same sku.
            session.rollback()
            raise InvalidRequest("SKU already in use")

    def create_product(
        self,
        session: Session,
        payload: ProductCreate,
        created_by: User,
    ) -> Product:
        self._ensure_sku_free(session, payload.sku)
        product = Product.model_validate(payload, update={"created_by": created_by.id})
        product = self._save(session, product, self.repo.create)
        logger.info("Product %s created by %s", product.id, created_by.id)
        return product

    def update_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        payload: ProductUpdate,
    ) -> Product:
        """
        Partial update of a product; only fields present in the payload
        change. Existing orders keep their own copies of name and price.
        """
        product = self.get_product(session, product_id)
        changes = payload.model_dump(exclude_unset=True)
        self._ensure_sku_free(session, changes.get("sku"), product.id)
        product.sqlmodel_update(changes)
        return self._save(session, product, self.repo.update)

    def delete_product(self, session: Session, product_id: uuid.UUID) -> None:
        """
        Delete a product, its reviews and cart lines, and clean up Storage.
        """
        product = self.get_product(session, product_id)
        image_id = product.image_id

        self.cart_repo.remove_product_everywhere(session, product.id)
        self.repo.delete(session, product)

        self._discard_blob(image_id)

    def set_image(
        self,
        session: Session,
        product_id: uuid.UUID,
        content_type: str,
        file_bytes: bytes,
    ) -> Product:
        """
        Upload or replace the product image.

        - Validates content type + size.
        - Uploads the new image, then deletes the previous one.
        """
        product = self.get_product(session, product_id)
        ext = self._validate_and_get_ext(content_type, file_bytes)

        old_image_id = product.image_id
        blob = upload_blob(f"products/{product.id}", ext, file_bytes)
        product.image_id = blob.id
        product.image_url = blob.url
        product = self.repo.update(session, product)

        self._discard_blob(old_image_id)
        return product

    # ----- Reviews -----

    def list_reviews(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> list[ProductReview]:
        self.get_product(session, product_id)
        return self.repo.list_reviews(session, product_id)

    def add_review(
        self,
        session: Session,
        product_id: uuid.UUID,
        user: User,
        payload: ReviewCreate,
    ) -> ProductReview:
        """
        Add the user's review and recompute the product's average rating.

        Raises:
            NotFound: product does not exist.
            AlreadyReviewed: the user already reviewed this product.
        """
        product = self.get_product(session, product_id)

        if self.repo.get_review_by_user(session, product.id, user.id):
            raise AlreadyReviewed("Product already reviewed")

        try:
            review = self.repo.add_review(
                session,
                ProductReview(
                    product_id=product.id,
                    user_id=user.id,
                    name=user.name,
                    rating=payload.rating,
                    comment=payload.comment,
                ),
            )
        except IntegrityError:
            # Lost a race against a concurrent review by the same user.
            session.rollback()
            raise AlreadyReviewed("Product already reviewed")

        product.average_rating, product.num_reviews = self.repo.rating_stats(
            session, product.id
        )
        self.repo.update(session, product)
        session.refresh(review)

        logger.info(
            "Review added to product %s (avg %.2f over %d)",
            product.id,
            product.average_rating,
            product.num_reviews,
        )
        return review
