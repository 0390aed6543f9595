"""Seller and admin load scenario: list, approve, restock."""

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import product_data, seller_id
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import SellerState

ADMIN = {"X-User-Id": "lt-admin", "X-User-Role": "admin"}


class SellerJourney(SequentialTaskSet):
    def on_start(self):
        self.state = SellerState(seller_id=seller_id())
        self.headers = {"X-User-Id": self.state.seller_id, "X-User-Role": "seller"}

    @task
    def list_product(self):
        with self.client.post(
            "/products", json=product_data(), headers=self.headers, catch_response=True, name="POST /products"
        ) as resp:
            if resp.status_code == 201:
                self.state.product_ids.append(resp.json()["product_id"])
            else:
                resp.failure(f"Listing failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def approve(self):
        product_id = self.state.product_ids[-1]
        self.client.post(f"/products/{product_id}/approve", headers=ADMIN, name="POST /products/{id}/approve")

    @task
    def restock(self):
        product_id = self.state.product_ids[-1]
        self.client.post(
            f"/products/{product_id}/restock",
            json={"quantity": 25},
            headers=self.headers,
            name="POST /products/{id}/restock",
        )
        self.interrupt()


class SellerUser(HttpUser):
    tasks = [SellerJourney]
    wait_time = between(2, 5)
