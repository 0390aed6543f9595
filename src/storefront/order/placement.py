"""Order placement — the single unit of work that commits a checkout.

Product stock, the new order row and the consumed cart lines are written
together. Every line's stock is checked against freshly loaded products
before any product is touched, so a short line aborts the whole placement
with nothing written.
"""

import json

import structlog
from protean import handle
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.cart.cart import ShoppingCart
from storefront.cart.items import cart_for
from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import InsufficientStock
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier(required=True)
    checkout_request_id = String(max_length=100)
    lines = Text(required=True)  # JSON: priced snapshot lines, see CartLine
    shipping_address = Text(required=True)  # JSON object
    subtotal = Float(required=True, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    coins_redeemed = Integer(default=0)
    coin_discount = Float(default=0.0)
    wallet_transaction_id = Identifier()
    payment_method = String(default="cod")


def find_order_for_request(user_id, request_id) -> Order | None:
    if not request_id:
        return None
    found = (
        current_domain.repository_for(Order)
        ._dao.query.filter(user_id=str(user_id), checkout_request_id=request_id)
        .all()
        .items
    )
    return found[0] if found else None


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        existing = find_order_for_request(command.user_id, command.checkout_request_id)
        if existing is not None:
            return str(existing.id)

        lines = json.loads(command.lines)
        product_repo = current_domain.repository_for(Product)

        products = {}
        for line in lines:
            if line["product_id"] not in products:
                products[line["product_id"]] = product_repo.get(line["product_id"])

        # Aggregate per (product, variant) so two lines of the same stock bucket are checked together
        wanted = {}
        for line in lines:
            key = (line["product_id"], line.get("variant_id"))
            wanted[key] = wanted.get(key, 0) + line["quantity"]

        shortfalls = [
            missing
            for (product_id, variant_id), quantity in wanted.items()
            if (missing := products[product_id].shortfall(quantity, variant_id))
        ]
        if shortfalls:
            raise InsufficientStock(shortfalls)

        for (product_id, variant_id), quantity in wanted.items():
            products[product_id].reserve_stock(quantity, variant_id=variant_id)
        for product in products.values():
            product_repo.add(product)

        order = Order.place(
            user_id=command.user_id,
            lines=lines,
            shipping_address=json.loads(command.shipping_address),
            subtotal=command.subtotal,
            total=command.total,
            coins_redeemed=command.coins_redeemed or 0,
            coin_discount=command.coin_discount or 0.0,
            wallet_transaction_id=command.wallet_transaction_id,
            payment_method=command.payment_method,
            checkout_request_id=command.checkout_request_id,
        )
        current_domain.repository_for(Order).add(order)

        cart = cart_for(command.user_id)
        cart.consume(lines, order_id=order.id)
        current_domain.repository_for(ShoppingCart).add(cart)

        logger.info(
            "order_placed",
            order_id=str(order.id),
            user_id=command.user_id,
            total=command.total,
            coins_redeemed=command.coins_redeemed,
        )
        return str(order.id)
