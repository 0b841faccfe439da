import uuid

API = "/api/v1"


def add(client, user, product_id, quantity=1):
    return client.post(
        f"{API}/cart",
        json={"product_id": str(product_id), "quantity": quantity},
        headers=user.headers,
    )


class TestCart:
    def test_empty_cart(self, client, customer):
        response = client.get(f"{API}/cart", headers=customer.headers)
        assert response.status_code == 200
        assert response.json() == {"items": [], "total_quantity": 0, "total_price": 0.0}

    def test_adding_same_product_increments_line(self, client, customer, make_product):
        product_id = make_product(name="Camera", price=10.0, stock_on_hand=5)

        assert add(client, customer, product_id, 2).status_code == 201
        response = add(client, customer, product_id, 1)

        data = response.json()
        assert len(data["items"]) == 1
        assert data["items"][0]["quantity"] == 3
        assert data["items"][0]["product_name"] == "Camera"
        assert data["items"][0]["line_total"] == 30.0
        assert data["total_quantity"] == 3
        assert data["total_price"] == 30.0

    def test_cannot_add_more_than_stock(self, client, customer, make_product):
        product_id = make_product(stock_on_hand=2)
        add(client, customer, product_id, 2)

        response = add(client, customer, product_id, 1)

        assert response.status_code == 400
        assert response.json()["detail"] == "Not enough stock available"

    def test_unknown_product(self, client, customer):
        response = add(client, customer, uuid.uuid4())
        assert response.status_code == 404

    def test_zero_quantity_rejected(self, client, customer, make_product):
        response = add(client, customer, make_product(), 0)
        assert response.status_code == 422

    def test_update_quantity(self, client, customer, make_product):
        product_id = make_product(price=4.0, stock_on_hand=10)
        add(client, customer, product_id)

        response = client.put(
            f"{API}/cart/{product_id}", json={"quantity": 7}, headers=customer.headers
        )

        assert response.status_code == 200
        assert response.json()["total_price"] == 28.0

    def test_update_missing_line(self, client, customer, make_product):
        product_id = make_product()
        response = client.put(
            f"{API}/cart/{product_id}", json={"quantity": 1}, headers=customer.headers
        )
        assert response.status_code == 404

    def test_remove_and_clear(self, client, customer, make_product):
        a = make_product(name="Book", category="Books")
        b = make_product(name="Shoe", category="Clothes/Shoes")
        add(client, customer, a)
        add(client, customer, b)

        response = client.delete(f"{API}/cart/{a}", headers=customer.headers)
        assert [i["product_id"] for i in response.json()["items"]] == [str(b)]

        assert client.delete(f"{API}/cart/{a}", headers=customer.headers).status_code == 404

        response = client.delete(f"{API}/cart", headers=customer.headers)
        assert response.json()["items"] == []
        assert response.json()["total_price"] == 0.0

    def test_carts_are_per_user(self, client, customer, other_customer, make_product):
        add(client, customer, make_product())

        response = client.get(f"{API}/cart", headers=other_customer.headers)
        assert response.json()["items"] == []

    def test_requires_authentication(self, client):
        assert client.get(f"{API}/cart").status_code == 401
