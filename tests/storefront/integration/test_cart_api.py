"""Cart endpoints via TestClient."""


class TestCartEndpoints:
    def test_empty_cart(self, client, buyer):
        response = client.get("/cart", headers=buyer)
        assert response.status_code == 200
        assert response.json()["items"] == []

    def test_added_item_is_priced(self, client, buyer, make_product, add_to_cart):
        product_id = make_product(name="Silk Saree", price=1200.0)
        add_to_cart(product_id, quantity=2)

        body = client.get("/cart", headers=buyer).json()
        assert body["total_quantity"] == 2
        assert body["items"][0]["name"] == "Silk Saree"
        assert body["items"][0]["line_total"] == 2400.0
        assert body["subtotal"] == 2400.0

    def test_update_and_remove(self, client, buyer, make_product, add_to_cart):
        item_id = add_to_cart(make_product())

        assert client.put(f"/cart/items/{item_id}", json={"quantity": 3}, headers=buyer).status_code == 200
        assert client.get("/cart", headers=buyer).json()["total_quantity"] == 3

        assert client.delete(f"/cart/items/{item_id}", headers=buyer).status_code == 200
        assert client.get("/cart", headers=buyer).json()["items"] == []

    def test_zero_quantity_rejected(self, client, buyer, make_product):
        response = client.post("/cart/items", json={"product_id": make_product(), "quantity": 0}, headers=buyer)
        assert response.status_code == 422

    def test_unknown_product(self, client, buyer):
        response = client.post("/cart/items", json={"product_id": "missing"}, headers=buyer)
        assert response.status_code == 400

    def test_requires_user(self, client):
        assert client.get("/cart").status_code == 401

    def test_clear(self, client, buyer, make_product, add_to_cart):
        add_to_cart(make_product())
        assert client.delete("/cart", headers=buyer).status_code == 200
        assert client.get("/cart", headers=buyer).json()["item_count"] == 0
