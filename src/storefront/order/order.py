"""Order aggregate — the record checkout commits.

Lines, prices, the coin redemption and the shipping address are frozen at
creation. After that only the status (through the transition map below) and
the carrier dispatch fields change.

State Machine:
    PENDING → PROCESSING → SHIPPED → DELIVERED
    PENDING/PROCESSING → CANCELLED
"""

import json
import re
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from storefront.domain import storefront
from storefront.errors import InvalidAddress
from storefront.order.events import (
    OrderAwbAssigned,
    OrderCancelled,
    OrderDispatched,
    OrderDispatchFailed,
    OrderPlaced,
    OrderStatusChanged,
    OrderTrackingUpdated,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(Enum):
    COD = "cod"
    PREPAID = "prepaid"


class DispatchStatus(Enum):
    UNSHIPPED = "unshipped"
    DISPATCHED = "dispatched"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_REQUIRED_ADDRESS_FIELDS = ("name", "phone", "address", "city", "state", "pincode")
_PINCODE = re.compile(r"^\d{6}$")


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships, as captured at checkout."""

    name = String(required=True, max_length=255)
    phone = String(required=True, max_length=20)
    email = String(max_length=255)
    address = String(required=True, max_length=500)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    pincode = String(required=True, max_length=10)
    country = String(max_length=100, default="India")

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "country": self.country,
        }


def validate_address(data) -> dict:
    """Normalise a raw address payload or raise ``InvalidAddress``.

    Runs before checkout touches anything, so a bad address never leaves a
    half-finished attempt behind.
    """
    data = {k: (v.strip() if isinstance(v, str) else v) for k, v in (data or {}).items()}
    errors = {}
    for field in _REQUIRED_ADDRESS_FIELDS:
        if not data.get(field):
            errors[field] = [f"{field} is required"]
    if data.get("pincode") and not _PINCODE.match(data["pincode"]):
        errors["pincode"] = ["Pincode must be 6 digits"]
    if data.get("phone") and len(re.sub(r"\D", "", data["phone"])) < 10:
        errors["phone"] = ["Phone number must have at least 10 digits"]
    if errors:
        raise InvalidAddress(errors)

    data.setdefault("country", "India")
    return {k: data.get(k) for k in (*_REQUIRED_ADDRESS_FIELDS, "email", "country")}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderLine:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    name = String(required=True, max_length=255)
    sku = String(max_length=64)
    category = String(max_length=100)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    mrp = Float(min_value=0.0)

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    user_id = Identifier(required=True)
    lines = HasMany(OrderLine)
    subtotal = Float(required=True, min_value=0.0)
    coins_redeemed = Integer(default=0, min_value=0)
    coin_discount = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    wallet_transaction_id = Identifier()
    shipping_address = ValueObject(ShippingAddress)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.COD.value)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    checkout_request_id = String(max_length=100)
    cancellation_reason = String(max_length=500)

    # Carrier dispatch
    dispatch_status = String(choices=DispatchStatus, default=DispatchStatus.UNSHIPPED.value)
    shiprocket_order_id = String(max_length=50)
    shiprocket_shipment_id = String(max_length=50)
    awb_code = String(max_length=50)
    courier_name = String(max_length=100)
    tracking_status = String(max_length=100)
    dispatch_error = Text()
    dispatch_attempts = Integer(default=0)

    placed_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        user_id,
        lines,
        shipping_address,
        subtotal,
        total,
        coins_redeemed=0,
        coin_discount=0.0,
        wallet_transaction_id=None,
        payment_method=PaymentMethod.COD.value,
        checkout_request_id=None,
    ):
        """Create a pending order from priced line dicts."""
        if not lines:
            raise ValidationError({"lines": ["An order needs at least one line"]})

        now = datetime.now(UTC)
        order = cls(
            user_id=user_id,
            subtotal=subtotal,
            total=total,
            coins_redeemed=coins_redeemed,
            coin_discount=coin_discount,
            wallet_transaction_id=wallet_transaction_id,
            shipping_address=ShippingAddress(**shipping_address),
            payment_method=payment_method,
            status=OrderStatus.PENDING.value,
            checkout_request_id=checkout_request_id,
            placed_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_lines(
                OrderLine(
                    product_id=line["product_id"],
                    variant_id=line.get("variant_id"),
                    name=line["name"],
                    sku=line.get("sku"),
                    category=line.get("category"),
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    mrp=line.get("mrp"),
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                user_id=str(user_id),
                checkout_request_id=checkout_request_id,
                lines=json.dumps(
                    [
                        {
                            "product_id": str(ln.product_id),
                            "variant_id": str(ln.variant_id) if ln.variant_id else None,
                            "quantity": ln.quantity,
                            "unit_price": ln.unit_price,
                        }
                        for ln in order.lines
                    ]
                ),
                subtotal=subtotal,
                coins_redeemed=coins_redeemed,
                coin_discount=coin_discount,
                total=total,
                payment_method=payment_method,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    @property
    def is_dispatched(self) -> bool:
        return bool(self.shiprocket_shipment_id)

    @property
    def is_cash_on_delivery(self) -> bool:
        return self.payment_method == PaymentMethod.COD.value

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def change_status(self, new_status):
        """Move along the transition map. Cancellation goes through ``cancel``."""
        target = OrderStatus(new_status)
        if target == OrderStatus.CANCELLED:
            raise ValidationError({"status": ["Use cancel() to cancel an order"]})
        self._assert_can_transition(target)

        previous = self.status
        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                user_id=str(self.user_id),
                previous_status=previous,
                new_status=target.value,
                changed_at=now,
            )
        )

    def assert_cancellable(self):
        self._assert_can_transition(OrderStatus.CANCELLED)

    def cancel(self, reason=None):
        self.assert_cancellable()

        previous = self.status
        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                user_id=str(self.user_id),
                previous_status=previous,
                reason=reason,
                coins_redeemed=self.coins_redeemed,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Carrier dispatch
    # -------------------------------------------------------------------
    def record_dispatch(self, shiprocket_order_id, shipment_id, awb_code=None, courier_name=None, attempts=1):
        if self.is_dispatched:
            raise ValidationError({"shiprocket_shipment_id": ["Order already has a shipment"]})
        if OrderStatus(self.status) not in (OrderStatus.PENDING, OrderStatus.PROCESSING):
            raise ValidationError({"status": [f"Cannot ship an order that is {self.status}"]})

        now = datetime.now(UTC)
        self.shiprocket_order_id = str(shiprocket_order_id)
        self.shiprocket_shipment_id = str(shipment_id)
        self.awb_code = awb_code
        self.courier_name = courier_name
        self.dispatch_status = DispatchStatus.DISPATCHED.value
        self.dispatch_error = None
        self.dispatch_attempts = (self.dispatch_attempts or 0) + attempts
        self.updated_at = now

        self.raise_(
            OrderDispatched(
                order_id=str(self.id),
                shiprocket_order_id=self.shiprocket_order_id,
                shiprocket_shipment_id=self.shiprocket_shipment_id,
                awb_code=awb_code,
                courier_name=courier_name,
                attempts=self.dispatch_attempts,
                dispatched_at=now,
            )
        )

        if OrderStatus(self.status) == OrderStatus.PENDING:
            self.change_status(OrderStatus.PROCESSING.value)

    def record_awb(self, awb_code, courier_name=None):
        if not self.is_dispatched:
            raise ValidationError({"awb_code": ["Order has no shipment to assign an AWB to"]})
        if self.awb_code:
            raise ValidationError({"awb_code": ["Order already has an AWB"]})

        now = datetime.now(UTC)
        self.awb_code = awb_code
        self.courier_name = courier_name or self.courier_name
        self.dispatch_error = None
        self.updated_at = now

        self.raise_(
            OrderAwbAssigned(
                order_id=str(self.id),
                shiprocket_shipment_id=self.shiprocket_shipment_id,
                awb_code=awb_code,
                courier_name=self.courier_name,
                assigned_at=now,
            )
        )

    def record_awb_failure(self, reason):
        """The shipment stands; only the AWB is outstanding."""
        self.dispatch_error = reason
        self.updated_at = datetime.now(UTC)

    def record_dispatch_failure(self, reason, attempts):
        now = datetime.now(UTC)
        self.dispatch_status = DispatchStatus.FAILED.value
        self.dispatch_error = reason
        self.dispatch_attempts = (self.dispatch_attempts or 0) + attempts
        self.updated_at = now

        self.raise_(
            OrderDispatchFailed(
                order_id=str(self.id),
                reason=reason,
                attempts=self.dispatch_attempts,
                failed_at=now,
            )
        )

    def record_tracking(self, tracking_status, awb_code=None):
        """Store the carrier's latest status and follow it to shipped/delivered."""
        now = datetime.now(UTC)
        self.tracking_status = tracking_status
        if awb_code:
            self.awb_code = awb_code
        self.updated_at = now

        self.raise_(
            OrderTrackingUpdated(
                order_id=str(self.id),
                awb_code=self.awb_code,
                tracking_status=tracking_status,
                updated_at=now,
            )
        )

        current = OrderStatus(self.status)
        normalized = tracking_status.strip().lower()
        if normalized == "delivered":
            if current == OrderStatus.PROCESSING:
                self.change_status(OrderStatus.SHIPPED.value)
            if OrderStatus(self.status) == OrderStatus.SHIPPED:
                self.change_status(OrderStatus.DELIVERED.value)
        elif normalized in ("shipped", "in transit", "in_transit", "out for delivery", "picked up"):
            if current == OrderStatus.PROCESSING:
                self.change_status(OrderStatus.SHIPPED.value)
