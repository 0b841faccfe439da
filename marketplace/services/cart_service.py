# marketplace/services/cart_service.py
import uuid

from sqlmodel import Session

from marketplace.core.errors import InsufficientStock, NotFound
from marketplace.models.cart import CartItem
from marketplace.models.product import Product
from marketplace.repositories.cart_repo import CartRepository
from marketplace.repositories.product_repo import ProductRepository
from marketplace.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartItemRead,
    CartSummary,
)


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - validate product existence
      - enforce quantity <= stock_on_hand
      - use snapshot_price from Product.price
      - compute line totals and cart totals
    """

    def __init__(self, cart_repo: CartRepository, product_repo: ProductRepository):
        self.cart_repo = cart_repo
        self.product_repo = product_repo

    # ---- internal helpers ----

    def _get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if not product:
            raise NotFound("Product not found")
        return product

    # ---- public operations ----

    def get_cart_summary(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        """
        Return full cart summary:
          - list of CartItemRead (with line_total)
          - total_quantity
          - total_price
        """
        items = self.cart_repo.list_for_user(session, user_id)

        item_reads: list[CartItemRead] = []
        total_qty = 0
        total_price = 0.0

        for it in items:
            line_total = it.quantity * it.snapshot_price
            total_qty += it.quantity
            total_price += line_total

            item_reads.append(
                CartItemRead(
                    id=it.id,
                    product_id=it.product_id,
                    product_name=it.product_name,
                    quantity=it.quantity,
                    snapshot_price=it.snapshot_price,
                    line_total=line_total,
                    created_at=it.created_at,
                )
            )

        return CartSummary(
            items=item_reads,
            total_quantity=total_qty,
            total_price=total_price,
        )

    def add_to_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a product to the user's cart.

        Rules:
          - product must exist
          - quantity + existing_quantity <= stock_on_hand
          - an existing line for the product is incremented, never duplicated
          - snapshot_price is taken from current product.price
        """
        product = self._get_product(session, payload.product_id)

        existing = self.cart_repo.get_item(session, user_id, payload.product_id)
        new_qty = payload.quantity + (existing.quantity if existing else 0)

        if new_qty > product.stock_on_hand:
            raise InsufficientStock("Not enough stock available")

        if existing:
            existing.quantity = new_qty
            self.cart_repo.update(session, existing)
        else:
            self.cart_repo.create(
                session,
                CartItem(
                    user_id=user_id,
                    product_id=product.id,
                    quantity=payload.quantity,
                    snapshot_price=product.price,
                    product_name=product.name,
                ),
            )

        return self.get_cart_summary(session, user_id)

    def update_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        """
        Set the quantity of an item already in the cart.
        """
        product = self._get_product(session, product_id)

        if payload.quantity > product.stock_on_hand:
            raise InsufficientStock("Not enough stock available")

        item = self.cart_repo.get_item(session, user_id, product_id)
        if not item:
            raise NotFound("Item not found in cart")

        item.quantity = payload.quantity
        self.cart_repo.update(session, item)

        return self.get_cart_summary(session, user_id)

    def remove_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> CartSummary:
        item = self.cart_repo.get_item(session, user_id, product_id)
        if not item:
            raise NotFound("Item not found in cart")

        self.cart_repo.delete(session, item)
        return self.get_cart_summary(session, user_id)

    def clear_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        """
        Clear all items from the cart and return an empty summary.
        """
        self.cart_repo.clear_user_cart(session, user_id)
        return CartSummary(items=[], total_quantity=0, total_price=0.0)
