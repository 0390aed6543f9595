import pytest
from fastapi.testclient import TestClient

from storefront.api import create_app


@pytest.fixture()
def client():
    return TestClient(create_app())


@pytest.fixture()
def buyer():
    return {"X-User-Id": "buyer-001"}


@pytest.fixture()
def admin():
    return {"X-User-Id": "admin-001", "X-User-Role": "admin"}


@pytest.fixture()
def seller():
    return {"X-User-Id": "seller-001", "X-User-Role": "seller"}


@pytest.fixture()
def add_to_cart(client, buyer):
    def _add(product_id, quantity=1, headers=None):
        response = client.post(
            "/cart/items",
            json={"product_id": product_id, "quantity": quantity},
            headers=headers or buyer,
        )
        assert response.status_code == 201, response.text
        return response.json()["item_id"]

    return _add
