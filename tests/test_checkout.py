import uuid

import pytest
from fastapi import BackgroundTasks
from sqlmodel import Session, select

from marketplace.core.errors import InsufficientStock
from marketplace.core.notifier import EmailNotifier
from marketplace.database import engine
from marketplace.models.cart import CartItem
from marketplace.models.order import Order, OrderItem
from marketplace.models.product import Product
from marketplace.models.user import User
from marketplace.repositories.cart_repo import CartRepository
from marketplace.repositories.order_repo import OrderRepository
from marketplace.repositories.product_repo import ProductRepository
from marketplace.repositories.user_repo import UserRepository
from marketplace.schemas.order import OrderCreate
from marketplace.services.order_service import OrderService

API = "/api/v1"

SHIPPING = {
    "address": "1 Main St",
    "city": "Springfield",
    "postal_code": "12345",
    "country": "US",
}


def order_body(items=None, tax_price=5.0, shipping_price=3.0):
    body = {
        "shipping_address": SHIPPING,
        "payment_method": "PayPal",
        "tax_price": tax_price,
        "shipping_price": shipping_price,
    }
    if items is not None:
        body["items"] = items
    return body


def count_orders() -> int:
    with Session(engine) as session:
        return len(session.exec(select(Order)).all())


def cart_rows(user_id) -> list[CartItem]:
    with Session(engine) as session:
        return list(session.exec(select(CartItem).where(CartItem.user_id == user_id)).all())


class TestExplicitItems:
    def test_totals_stock_and_notification(
        self, client, customer, make_product, load, sent_emails
    ):
        product_id = make_product(price=10.0, stock_on_hand=5)

        response = client.post(
            f"{API}/orders",
            json=order_body([{"product_id": str(product_id), "quantity": 2}]),
            headers=customer.headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["items_price"] == 20.0
        assert data["tax_price"] == 5.0
        assert data["shipping_price"] == 3.0
        assert data["total_price"] == 28.0
        assert data["is_paid"] is False
        assert data["is_delivered"] is False
        assert data["user_id"] == str(customer.id)
        assert data["shipping_address"] == SHIPPING
        assert [(i["product_id"], i["quantity"], i["unit_price"]) for i in data["items"]] == [
            (str(product_id), 2, 10.0)
        ]

        assert load(Product, product_id).stock_on_hand == 3

        assert len(sent_emails) == 1
        assert sent_emails[0]["to"] == customer.email
        assert data["id"] in sent_emails[0]["body"]
        assert f"/api/v1/orders/{data['id']}" in sent_emails[0]["body"]

    def test_total_is_sum_of_lines_plus_tax_and_shipping(
        self, client, customer, make_product
    ):
        a = make_product(name="Lens", price=12.5, stock_on_hand=10)
        b = make_product(name="Tripod", price=7.25, stock_on_hand=10)

        response = client.post(
            f"{API}/orders",
            json=order_body(
                [
                    {"product_id": str(a), "quantity": 3},
                    {"product_id": str(b), "quantity": 4},
                ],
                tax_price=1.5,
                shipping_price=0.0,
            ),
            headers=customer.headers,
        )

        data = response.json()
        assert data["items_price"] == 3 * 12.5 + 4 * 7.25
        assert data["total_price"] == data["items_price"] + 1.5 + 0.0

    def test_repeated_product_lines_are_merged(
        self, client, customer, make_product, load
    ):
        product_id = make_product(stock_on_hand=3)

        response = client.post(
            f"{API}/orders",
            json=order_body(
                [
                    {"product_id": str(product_id), "quantity": 2},
                    {"product_id": str(product_id), "quantity": 2},
                ]
            ),
            headers=customer.headers,
        )

        assert response.status_code == 400
        assert "Not enough stock" in response.json()["detail"]
        assert load(Product, product_id).stock_on_hand == 3

    def test_explicit_items_leave_cart_untouched(
        self, client, customer, make_product
    ):
        in_cart = make_product(name="Book")
        ordered = make_product(name="Lamp")
        client.post(
            f"{API}/cart",
            json={"product_id": str(in_cart), "quantity": 1},
            headers=customer.headers,
        )

        response = client.post(
            f"{API}/orders",
            json=order_body([{"product_id": str(ordered), "quantity": 1}]),
            headers=customer.headers,
        )

        assert response.status_code == 201
        assert [row.product_id for row in cart_rows(customer.id)] == [in_cart]

    def test_order_keeps_price_after_product_changes(
        self, client, customer, admin, make_product
    ):
        product_id = make_product(name="Drone", price=100.0)
        order = client.post(
            f"{API}/orders",
            json=order_body([{"product_id": str(product_id), "quantity": 1}]),
            headers=customer.headers,
        ).json()

        client.patch(
            f"{API}/products/{product_id}",
            json={"price": 250.0, "name": "Drone Pro"},
            headers=admin.headers,
        )

        fetched = client.get(f"{API}/orders/{order['id']}", headers=customer.headers).json()
        assert fetched["items"][0]["unit_price"] == 100.0
        assert fetched["items"][0]["name"] == "Drone"
        assert fetched["items_price"] == 100.0


class TestCartCheckout:
    def test_cart_is_emptied_and_stock_decremented(
        self, client, customer, make_product, load
    ):
        product_id = make_product(price=10.0, stock_on_hand=5)
        client.post(
            f"{API}/cart",
            json={"product_id": str(product_id), "quantity": 2},
            headers=customer.headers,
        )

        response = client.post(f"{API}/orders", json=order_body(), headers=customer.headers)

        assert response.status_code == 201
        assert response.json()["items_price"] == 20.0
        assert response.json()["total_price"] == 28.0
        assert load(Product, product_id).stock_on_hand == 3

        cart = client.get(f"{API}/cart", headers=customer.headers).json()
        assert cart["items"] == []
        assert cart["total_price"] == 0
        assert cart_rows(customer.id) == []

    def test_uses_current_catalog_price(
        self, client, customer, admin, make_product
    ):
        product_id = make_product(price=10.0)
        client.post(
            f"{API}/cart",
            json={"product_id": str(product_id), "quantity": 1},
            headers=customer.headers,
        )
        client.patch(
            f"{API}/products/{product_id}",
            json={"price": 15.0},
            headers=admin.headers,
        )

        response = client.post(f"{API}/orders", json=order_body(), headers=customer.headers)

        assert response.json()["items"][0]["unit_price"] == 15.0


class TestValidationFailures:
    def test_empty_item_list(self, client, customer, sent_emails):
        response = client.post(f"{API}/orders", json=order_body([]), headers=customer.headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "No order items"
        assert count_orders() == 0
        assert sent_emails == []

    def test_empty_cart(self, client, customer, sent_emails):
        response = client.post(f"{API}/orders", json=order_body(), headers=customer.headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "No items in cart"
        assert count_orders() == 0
        assert sent_emails == []

    def test_missing_product(self, client, customer, make_product, load):
        existing = make_product(stock_on_hand=5)
        missing = uuid.uuid4()

        response = client.post(
            f"{API}/orders",
            json=order_body(
                [
                    {"product_id": str(existing), "quantity": 1},
                    {"product_id": str(missing), "quantity": 1},
                ]
            ),
            headers=customer.headers,
        )

        assert response.status_code == 404
        assert str(missing) in response.json()["detail"]
        assert count_orders() == 0
        assert load(Product, existing).stock_on_hand == 5

    def test_insufficient_stock_has_no_side_effects(
        self, client, customer, make_product, load, sent_emails
    ):
        plenty = make_product(name="Cable", stock_on_hand=10)
        scarce = make_product(name="Headset", stock_on_hand=1, category="Headphones")
        for product_id in (plenty, scarce):
            client.post(
                f"{API}/cart",
                json={"product_id": str(product_id), "quantity": 1},
                headers=customer.headers,
            )
        client.put(
            f"{API}/cart/{plenty}",
            json={"quantity": 4},
            headers=customer.headers,
        )
        # Someone else bought the last headset.
        with Session(engine) as session:
            product = session.get(Product, scarce)
            product.stock_on_hand = 0
            session.add(product)
            session.commit()

        response = client.post(f"{API}/orders", json=order_body(), headers=customer.headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Not enough stock for product: Headset"
        assert count_orders() == 0
        assert load(Product, plenty).stock_on_hand == 10
        assert len(cart_rows(customer.id)) == 2
        assert sent_emails == []

    def test_negative_prices_rejected(self, client, customer, make_product):
        product_id = make_product()
        response = client.post(
            f"{API}/orders",
            json=order_body(
                [{"product_id": str(product_id), "quantity": 1}], tax_price=-1
            ),
            headers=customer.headers,
        )
        assert response.status_code == 422

    def test_requires_authentication(self, client):
        response = client.post(f"{API}/orders", json=order_body())
        assert response.status_code == 401


class StaleProductRepository(ProductRepository):
    """Reports more stock than is left, as a concurrent checkout would."""

    def get_by_id(self, session, product_id):
        product = super().get_by_id(session, product_id)
        if product is None:
            return None
        return Product(
            id=product.id,
            name=product.name,
            price=product.price,
            category=product.category,
            stock_on_hand=product.stock_on_hand + 10,
        )


class TestConcurrentStock:
    def test_conditional_decrement_refuses_overdraw(self, make_product, load):
        product_id = make_product(stock_on_hand=2)
        repo = ProductRepository()

        with Session(engine) as session:
            assert repo.decrement_stock(session, product_id, 3) is False
            assert repo.decrement_stock(session, product_id, 2) is True
            assert repo.decrement_stock(session, product_id, 1) is False
            session.commit()

        assert load(Product, product_id).stock_on_hand == 0

    def test_lost_race_rolls_back_the_whole_order(
        self, customer, make_product, load
    ):
        first = make_product(name="Mouse", stock_on_hand=5)
        second = make_product(name="Keyboard", stock_on_hand=1)
        service = OrderService(
            OrderRepository(),
            CartRepository(),
            StaleProductRepository(),
            UserRepository(),
            EmailNotifier(),
        )
        payload = OrderCreate.model_validate(
            order_body(
                [
                    {"product_id": str(first), "quantity": 2},
                    {"product_id": str(second), "quantity": 3},
                ]
            )
        )
        background_tasks = BackgroundTasks()

        with Session(engine) as session:
            user = session.get(User, customer.id)
            with pytest.raises(InsufficientStock):
                service.place_order(
                    session, user, payload, background_tasks, "http://test/orders"
                )

        assert count_orders() == 0
        with Session(engine) as session:
            assert session.exec(select(OrderItem)).all() == []
        assert load(Product, first).stock_on_hand == 5
        assert load(Product, second).stock_on_hand == 1
        assert background_tasks.tasks == []
