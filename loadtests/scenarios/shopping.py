"""Buyer journey load scenario.

Browse -> Add to cart -> View cart -> Checkout -> Retry checkout -> View order.
The retry reuses the Idempotency-Key, so it must replay the first order
rather than place a second one.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import buyer_id, checkout_data, request_id
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import BuyerState


class BuyerJourney(SequentialTaskSet):
    def on_start(self):
        self.state = BuyerState(user_id=buyer_id())
        self.headers = {"X-User-Id": self.state.user_id}

    @task
    def browse(self):
        with self.client.get("/products?limit=50", catch_response=True, name="GET /products") as resp:
            if resp.status_code != 200:
                resp.failure(f"Browse failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()
                return
            products = [p for p in resp.json()["products"] if p["stock"] > 0]
            if not products:
                resp.success()
                self.interrupt()
                return
            self.state.product_ids = [p["product_id"] for p in random.sample(products, min(2, len(products)))]

    @task
    def add_to_cart(self):
        for product_id in self.state.product_ids:
            with self.client.post(
                "/cart/items",
                json={"product_id": product_id, "quantity": 1},
                headers=self.headers,
                catch_response=True,
                name="POST /cart/items",
            ) as resp:
                if resp.status_code == 201:
                    self.state.item_ids.append(resp.json()["item_id"])
                else:
                    resp.failure(f"Add to cart failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def view_cart(self):
        self.client.get("/cart", headers=self.headers, name="GET /cart")

    @task
    def checkout(self):
        if not self.state.item_ids:
            self.interrupt()
            return
        self.state.request_id = request_id()
        self._checkout(name="POST /checkout")

    @task
    def retry_checkout(self):
        if not self.state.order_id:
            return
        self._checkout(name="POST /checkout [retry]", expect_replay=True)

    @task
    def view_order(self):
        if self.state.order_id:
            self.client.get(f"/orders/{self.state.order_id}", headers=self.headers, name="GET /orders/{id}")
        self.interrupt()

    def _checkout(self, name, expect_replay=False):
        headers = {**self.headers, "Idempotency-Key": self.state.request_id}
        with self.client.post("/checkout", json=checkout_data(), headers=headers, catch_response=True, name=name) as resp:
            if resp.status_code == 201:
                body = resp.json()
                if expect_replay and (not body["replayed"] or body["order_id"] != self.state.order_id):
                    resp.failure(f"Retry placed a new order {body['order_id']}")
                self.state.order_id = body["order_id"]
            elif resp.status_code == 409:
                # Stock ran out under contention; not a server fault
                resp.success()
            else:
                resp.failure(f"Checkout failed: {resp.status_code} — {extract_error_detail(resp)}")


class ShopperUser(HttpUser):
    tasks = [BuyerJourney]
    wait_time = between(1, 3)
