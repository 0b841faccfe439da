# marketplace/services/order_service.py
import logging
import uuid
from datetime import datetime, timezone

from fastapi import BackgroundTasks
from sqlmodel import Session

from marketplace.core.errors import (
    InsufficientStock,
    InvalidRequest,
    NotFound,
    Unauthorized,
)
from marketplace.core.notifier import EmailNotifier
from marketplace.models.order import Order, OrderItem
from marketplace.models.product import Product
from marketplace.models.user import User
from marketplace.repositories.cart_repo import CartRepository
from marketplace.repositories.order_repo import OrderRepository
from marketplace.repositories.product_repo import ProductRepository
from marketplace.repositories.user_repo import UserRepository
from marketplace.schemas.order import (
    OrderCreate,
    OrderItemRead,
    OrderRead,
    OrderWithItemsRead,
    PaymentResult,
    ShippingAddress,
)

logger = logging.getLogger(__name__)


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Place an order from an explicit item list or from the cart
      - Validate items against products (existence, stock)
      - Compute items/total price from catalog prices
      - Deduct stock_on_hand atomically, clear the cart
      - Paid / delivered transitions and their notifications
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        user_repo: UserRepository,
        notifier: EmailNotifier,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.user_repo = user_repo
        self.notifier = notifier

    # -------- User-facing operations --------

    def place_order(
        self,
        session: Session,
        user: User,
        payload: OrderCreate,
        background_tasks: BackgroundTasks,
        orders_url: str,
    ) -> OrderWithItemsRead:
        """
        Checkout.

        Steps:
          1. Resolve requested {product_id: quantity} from payload.items,
             or from the cart when items is omitted; error if empty.
          2. Ensure every product exists.
          3. Ensure quantity <= stock_on_hand for every product.
          4. Compute items_price from current catalog prices, add tax
             and shipping.
          5. In one transaction: insert Order + OrderItems, decrement
             stock with a conditional update, clear the cart if used.
          6. Schedule the confirmation email.
        """
        from_cart = payload.items is None
        requested = self._resolve_requested(session, user.id, payload)
        lines = self._load_and_check_stock(session, requested)

        # Snapshot: name and unit price as they are right now.
        snapshot = [
            (product.id, product.name, quantity, product.price)
            for product, quantity in lines
        ]
        items_price = sum(quantity * price for _, _, quantity, price in snapshot)
        total_price = items_price + payload.tax_price + payload.shipping_price

        address = payload.shipping_address
        try:
            order = self.order_repo.create_order(
                session,
                Order(
                    user_id=user.id,
                    address=address.address,
                    city=address.city,
                    postal_code=address.postal_code,
                    country=address.country,
                    payment_method=payload.payment_method,
                    items_price=items_price,
                    tax_price=payload.tax_price,
                    shipping_price=payload.shipping_price,
                    total_price=total_price,
                ),
            )
            order_items = self.order_repo.create_items(
                session,
                [
                    OrderItem(
                        order_id=order.id,
                        product_id=product_id,
                        name=name,
                        quantity=quantity,
                        unit_price=price,
                    )
                    for product_id, name, quantity, price in snapshot
                ],
            )

            for product_id, name, quantity, _ in snapshot:
                if not self.product_repo.decrement_stock(session, product_id, quantity):
                    raise InsufficientStock(f"Not enough stock for product: {name}")

            if from_cart:
                self.cart_repo.clear_user_cart(session, user.id, commit=False)

            session.commit()
        except Exception:
            session.rollback()
            raise

        logger.info(
            "Order %s placed by %s: %d line(s), total %.2f",
            order.id,
            user.id,
            len(order_items),
            total_price,
        )

        order_url = f"{orders_url.rstrip('/')}/{order.id}"
        background_tasks.add_task(
            self.notifier.send,
            user.email,
            "Your order has been placed",
            f"Thank you for your order! Your order ID is {order.id}. "
            f"You can view your order details here: {order_url}",
        )

        return self._build_order_with_items_dto(order, order_items)

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        orders = self.order_repo.list_for_user(session, user_id, skip, limit)
        return [self._build_order_dto(o) for o in orders]

    def get_order(
        self,
        session: Session,
        user: User,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order with items; owner or admin only.
        """
        order = self._get_visible_order(session, user, order_id)
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    def mark_paid(
        self,
        session: Session,
        user: User,
        order_id: uuid.UUID,
        payment: PaymentResult,
        background_tasks: BackgroundTasks,
    ) -> OrderWithItemsRead:
        """
        Record a payment confirmation.

        An order that is already paid is returned unchanged and no second
        "payment received" email goes out.
        """
        order = self._get_visible_order(session, user, order_id)

        if not order.is_paid:
            order.is_paid = True
            order.paid_at = datetime.now(timezone.utc)
            order.payment_result = {
                "id": payment.id,
                "status": payment.status,
                "update_time": payment.update_time,
                "email_address": payment.payer.email_address,
            }
            self.order_repo.update_order(session, order)
            session.commit()
            logger.info("Order %s marked paid", order.id)

            self._notify_owner(
                session,
                order,
                background_tasks,
                "Your payment was received",
                f"We've received your payment for order {order.id}. Thank you!",
            )

        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    # -------- Admin operations --------

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        orders = self.order_repo.list_all(session, skip, limit)
        return [self._build_order_dto(o) for o in orders]

    def mark_delivered(
        self,
        session: Session,
        order_id: uuid.UUID,
        background_tasks: BackgroundTasks,
    ) -> OrderWithItemsRead:
        """
        Admin-only. Re-delivering an order is a no-op without a second email.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFound("Order not found")

        if not order.is_delivered:
            order.is_delivered = True
            order.delivered_at = datetime.now(timezone.utc)
            self.order_repo.update_order(session, order)
            session.commit()
            logger.info("Order %s marked delivered", order.id)

            self._notify_owner(
                session,
                order,
                background_tasks,
                "Your order has been delivered",
                f"Your order {order.id} has been delivered. "
                "Thank you for shopping with us!",
            )

        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    # -------- Checkout helpers --------

    def _resolve_requested(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: OrderCreate,
    ) -> dict[uuid.UUID, int]:
        """
        Return {product_id: quantity}; repeated product ids are summed.
        """
        if payload.items is not None:
            if not payload.items:
                raise InvalidRequest("No order items")
            requested: dict[uuid.UUID, int] = {}
            for item in payload.items:
                requested[item.product_id] = (
                    requested.get(item.product_id, 0) + item.quantity
                )
            return requested

        cart_items = self.cart_repo.list_for_user(session, user_id)
        if not cart_items:
            raise InvalidRequest("No items in cart")
        return {ci.product_id: ci.quantity for ci in cart_items}

    def _load_and_check_stock(
        self,
        session: Session,
        requested: dict[uuid.UUID, int],
    ) -> list[tuple[Product, int]]:
        lines: list[tuple[Product, int]] = []
        for product_id, quantity in requested.items():
            product = self.product_repo.get_by_id(session, product_id)
            if not product:
                raise NotFound(f"Product not found: {product_id}")
            lines.append((product, quantity))

        for product, quantity in lines:
            if product.stock_on_hand < quantity:
                raise InsufficientStock(f"Not enough stock for product: {product.name}")

        return lines

    # -------- Other helpers --------

    def _get_visible_order(
        self,
        session: Session,
        user: User,
        order_id: uuid.UUID,
    ) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFound("Order not found")
        if order.user_id != user.id and user.role != "admin":
            raise Unauthorized("Not authorized to access this order")
        return order

    def _notify_owner(
        self,
        session: Session,
        order: Order,
        background_tasks: BackgroundTasks,
        subject: str,
        message: str,
    ) -> None:
        owner = self.user_repo.get_by_id(session, order.user_id)
        if owner is None:
            logger.warning("Order %s has no owner profile; skipping email", order.id)
            return
        background_tasks.add_task(self.notifier.send, owner.email, subject, message)

    def _build_order_dto(self, order: Order) -> OrderRead:
        return OrderRead(
            id=order.id,
            user_id=order.user_id,
            shipping_address=ShippingAddress(
                address=order.address,
                city=order.city,
                postal_code=order.postal_code,
                country=order.country,
            ),
            payment_method=order.payment_method,
            items_price=order.items_price,
            tax_price=order.tax_price,
            shipping_price=order.shipping_price,
            total_price=order.total_price,
            is_paid=order.is_paid,
            paid_at=order.paid_at,
            payment_result=order.payment_result,
            is_delivered=order.is_delivered,
            delivered_at=order.delivered_at,
            created_at=order.created_at,
        )

    def _build_order_with_items_dto(
        self,
        order: Order,
        items: list[OrderItem],
    ) -> OrderWithItemsRead:
        """
        Compose OrderWithItemsRead from ORM models. Totals come from the
        stored order, never recomputed.
        """
        item_dtos = [
            OrderItemRead(
                id=it.id,
                product_id=it.product_id,
                name=it.name,
                quantity=it.quantity,
                unit_price=it.unit_price,
                line_total=it.quantity * it.unit_price,
            )
            for it in items
        ]
        return OrderWithItemsRead(
            **self._build_order_dto(order).model_dump(),
            items=item_dtos,
        )
