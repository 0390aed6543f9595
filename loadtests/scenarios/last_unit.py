"""Last-unit race: many buyers check out the same scarce product at once.

The product is listed once when the test starts. Every checkout must end
either in an order or in a 409 ``insufficient_stock``; anything else, or
more orders than units, is a failure.
"""

import threading

import requests
from locust import HttpUser, between, events, task

from loadtests.data_generators import buyer_id, checkout_data, product_data, request_id
from loadtests.helpers.response import error_code, extract_error_detail

RACE_STOCK = 5
ADMIN = {"X-User-Id": "lt-admin", "X-User-Role": "admin"}

_race = {"product_id": None, "orders": 0}
_lock = threading.Lock()


@events.test_start.add_listener
def list_scarce_product(environment, **_kwargs):
    if not environment.host:
        return
    payload = product_data(stock=RACE_STOCK)
    resp = requests.post(f"{environment.host}/products", json=payload, headers=ADMIN, timeout=10)
    resp.raise_for_status()
    product_id = resp.json()["product_id"]
    requests.post(f"{environment.host}/products/{product_id}/approve", headers=ADMIN, timeout=10).raise_for_status()
    _race.update(product_id=product_id, orders=0)


@events.test_stop.add_listener
def report_race(**_kwargs):
    print(f"\n[LOADTEST] Last-unit race: {_race['orders']} orders for {RACE_STOCK} units")
    if _race["orders"] > RACE_STOCK:
        print("[LOADTEST] OVERSOLD")


class LastUnitRaceUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = {"X-User-Id": buyer_id()}

    @task
    def grab_last_unit(self):
        if not _race["product_id"]:
            return
        self.client.post(
            "/cart/items",
            json={"product_id": _race["product_id"], "quantity": 1},
            headers=self.headers,
            name="[RACE] POST /cart/items",
        )
        headers = {**self.headers, "Idempotency-Key": request_id()}
        with self.client.post(
            "/checkout", json=checkout_data(), headers=headers, catch_response=True, name="[RACE] POST /checkout"
        ) as resp:
            if resp.status_code == 201:
                with _lock:
                    _race["orders"] += 1
                    oversold = _race["orders"] > RACE_STOCK
                if oversold:
                    resp.failure("More orders than units in stock")
            elif resp.status_code == 409 and error_code(resp) in ("insufficient_stock", "conflict"):
                resp.success()
            else:
                resp.failure(f"Unexpected checkout result: {resp.status_code} — {extract_error_detail(resp)}")
        # Start the next attempt from an empty cart
        self.client.delete("/cart", headers=self.headers, name="[RACE] DELETE /cart")
