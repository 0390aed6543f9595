"""Order status changes and cancellation.

Cancelling puts the reserved units back on the products and reverses the
coin debit in the same unit of work as the status change.
"""

from collections import defaultdict

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.order.order import Order
from storefront.wallet.wallet import WalletAccount

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    cancelled_by = String(max_length=20, default="buyer")


@storefront.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.change_status(command.status)
        repo.add(order)

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(reason=command.reason)
        repo.add(order)

        returned = defaultdict(int)
        for line in order.lines:
            returned[(str(line.product_id), str(line.variant_id) if line.variant_id else None)] += line.quantity

        product_repo = current_domain.repository_for(Product)
        products = {}
        for (product_id, variant_id), quantity in returned.items():
            product = products.get(product_id) or product_repo.get(product_id)
            product.release_stock(quantity, variant_id=variant_id)
            products[product_id] = product
        for product in products.values():
            product_repo.add(product)

        if order.wallet_transaction_id:
            wallet_repo = current_domain.repository_for(WalletAccount)
            wallet = wallet_repo.get(order.user_id)
            if not wallet.is_debit_reversed(order.wallet_transaction_id):
                wallet.reverse_debit(order.wallet_transaction_id, f"Refund for cancelled order {order.id}")
                wallet_repo.add(wallet)

        logger.info(
            "order_cancelled",
            order_id=str(order.id),
            cancelled_by=command.cancelled_by,
            coins_refunded=order.coins_redeemed,
        )
