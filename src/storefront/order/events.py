"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """Checkout committed: stock is reserved, coins spent, cart lines consumed."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    checkout_request_id = String(max_length=100)
    lines = Text(required=True)  # JSON: [{product_id, variant_id, quantity, unit_price}]
    subtotal = Float(required=True)
    coins_redeemed = Integer(default=0)
    coin_discount = Float(default=0.0)
    total = Float(required=True)
    payment_method = String(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String(max_length=500)
    coins_redeemed = Integer(default=0)
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderDispatched:
    """The carrier accepted the shipment."""

    __version__ = 1

    order_id = Identifier(required=True)
    shiprocket_order_id = String(required=True)
    shiprocket_shipment_id = String(required=True)
    awb_code = String()
    courier_name = String()
    attempts = Integer(required=True)
    dispatched_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderAwbAssigned:
    __version__ = 1

    order_id = Identifier(required=True)
    shiprocket_shipment_id = String(required=True)
    awb_code = String(required=True)
    courier_name = String()
    assigned_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderDispatchFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = Text(required=True)
    attempts = Integer(required=True)
    failed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderTrackingUpdated:
    __version__ = 1

    order_id = Identifier(required=True)
    awb_code = String()
    tracking_status = String(required=True)
    updated_at = DateTime(required=True)
