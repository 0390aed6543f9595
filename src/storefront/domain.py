"""Storefront bounded context — catalogue, cart, coins wallet, checkout and dispatch.

A single domain because checkout changes product stock, the order table and
the cart inside one unit of work, and compensates the wallet when it fails.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
