"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance keeps its own state; nothing is shared across users.
"""

from dataclasses import dataclass, field


@dataclass
class BuyerState:
    """One simulated buyer's journey from browsing to a placed order."""

    user_id: str | None = None
    product_ids: list[str] = field(default_factory=list)
    item_ids: list[str] = field(default_factory=list)
    request_id: str | None = None
    order_id: str | None = None


@dataclass
class SellerState:
    seller_id: str | None = None
    product_ids: list[str] = field(default_factory=list)
