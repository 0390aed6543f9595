"""Faker-based data generators for the storefront load scenarios.

Payloads pass the storefront's validation rules (10-digit phone, 6-digit
pincode) and match the field names of the API's request schemas.
"""

import random
import uuid

from faker import Faker

fake = Faker("en_IN")

CATEGORIES = ["Apparel", "Home Decor", "Handicrafts", "Kitchen", "Jewellery"]


def buyer_id() -> str:
    return f"lt-buyer-{uuid.uuid4().hex[:8]}"


def seller_id() -> str:
    return f"lt-seller-{uuid.uuid4().hex[:6]}"


def request_id() -> str:
    return f"lt-req-{uuid.uuid4().hex}"


def indian_phone() -> str:
    """Ten digits starting 6-9, like Indian mobile numbers."""
    return str(random.randint(6, 9)) + "".join(str(random.randint(0, 9)) for _ in range(9))


def shipping_address() -> dict:
    return {
        "name": fake.name()[:255],
        "phone": indian_phone(),
        "email": fake.free_email(),
        "address": fake.street_address()[:500],
        "city": fake.city()[:100],
        "state": fake.state()[:100],
        "pincode": f"{random.randint(110000, 855999)}",
    }


def product_data(stock: int | None = None) -> dict:
    price = round(random.uniform(99, 4999), 2)
    return {
        "name": f"{fake.color_name()} {fake.word().title()} {random.choice(['Kurta', 'Diya', 'Rug', 'Bangle'])}",
        "description": fake.sentence(nb_words=12),
        "category": random.choice(CATEGORIES),
        "price": price,
        "mrp": round(price * random.uniform(1.0, 1.4), 2),
        "stock": stock if stock is not None else random.randint(20, 500),
        "images": [f"https://cdn.lelekart.in/lt/{uuid.uuid4().hex[:12]}.jpg"],
    }


def checkout_data(redeem_coins: int = 0) -> dict:
    return {"shipping_address": shipping_address(), "redeem_coins": redeem_coins, "payment_method": "cod"}
