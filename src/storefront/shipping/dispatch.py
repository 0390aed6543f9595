"""Order dispatch to the carrier.

``push_order_to_carrier`` is idempotent per order: once an order carries a
Shiprocket shipment id, pushing it again returns that id without creating
another shipment. AWB assignment is a separate carrier call made after the
shipment ids are stored.

Carrier failures are retried with exponential backoff. A shipment that
cannot be created is written onto the order, logged, and raised as
``ExternalServiceError``. An AWB that cannot be assigned is only recorded as
the dispatch error, since the shipment already exists.
"""

import os
import time
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import ExternalServiceError
from storefront.order.order import Order, OrderStatus
from storefront.shipping.carrier import get_carrier
from storefront.shipping.carrier.port import CarrierError
from storefront.shipping.settings import load_shipping_settings

logger = structlog.get_logger(__name__)

CARRIER_SERVICE = "shiprocket"


def _max_attempts() -> int:
    return int(os.environ.get("CARRIER_MAX_ATTEMPTS", "3"))


def _backoff_seconds() -> float:
    return float(os.environ.get("CARRIER_BACKOFF_SECONDS", "0.5"))


@storefront.command(part_of="Order")
class RecordDispatch:
    order_id = Identifier(required=True)
    shiprocket_order_id = String(required=True, max_length=50)
    shiprocket_shipment_id = String(required=True, max_length=50)
    awb_code = String(max_length=50)
    courier_name = String(max_length=100)
    attempts = Integer(default=1)


@storefront.command(part_of="Order")
class RecordDispatchFailure:
    order_id = Identifier(required=True)
    reason = Text(required=True)
    attempts = Integer(required=True)


@storefront.command(part_of="Order")
class RecordAwb:
    order_id = Identifier(required=True)
    awb_code = String(required=True, max_length=50)
    courier_name = String(max_length=100)


@storefront.command(part_of="Order")
class RecordAwbFailure:
    order_id = Identifier(required=True)
    reason = Text(required=True)


@storefront.command(part_of="Order")
class RecordTracking:
    order_id = Identifier(required=True)
    tracking_status = String(required=True, max_length=100)
    awb_code = String(max_length=50)


@storefront.command_handler(part_of=Order)
class DispatchHandler:
    @handle(RecordDispatch)
    def record_dispatch(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.is_dispatched:
            # A concurrent push got there first; keep its shipment
            logger.warning(
                "duplicate_carrier_shipment",
                order_id=command.order_id,
                kept_shipment_id=order.shiprocket_shipment_id,
                orphan_shipment_id=command.shiprocket_shipment_id,
            )
            return order.shiprocket_shipment_id

        order.record_dispatch(
            shiprocket_order_id=command.shiprocket_order_id,
            shipment_id=command.shiprocket_shipment_id,
            awb_code=command.awb_code,
            courier_name=command.courier_name,
            attempts=command.attempts,
        )
        repo.add(order)
        return order.shiprocket_shipment_id

    @handle(RecordDispatchFailure)
    def record_dispatch_failure(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_dispatch_failure(command.reason, command.attempts)
        repo.add(order)

    @handle(RecordAwb)
    def record_awb(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_awb(command.awb_code, courier_name=command.courier_name)
        repo.add(order)

    @handle(RecordAwbFailure)
    def record_awb_failure(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_awb_failure(command.reason)
        repo.add(order)

    @handle(RecordTracking)
    def record_tracking(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_tracking(command.tracking_status, awb_code=command.awb_code)
        repo.add(order)
        return order.status


def build_shipment_request(order: Order, settings) -> dict:
    """Shiprocket adhoc order payload for ``order``."""
    address = order.shipping_address
    first, _, last = (address.name or "").partition(" ")
    payload = {
        "order_id": str(order.id),
        "order_date": (order.placed_at or datetime.now(UTC)).strftime("%Y-%m-%d %H:%M"),
        "pickup_location": settings.pickup_location or "Primary",
        "billing_customer_name": first,
        "billing_last_name": last,
        "billing_address": address.address,
        "billing_city": address.city,
        "billing_pincode": address.pincode,
        "billing_state": address.state,
        "billing_country": address.country or "India",
        "billing_email": address.email or "",
        "billing_phone": address.phone,
        "shipping_is_billing": True,
        "order_items": [
            {
                "name": line.name,
                "sku": line.sku or str(line.product_id),
                "units": line.quantity,
                "selling_price": line.unit_price,
                "discount": 0,
                "tax": 0,
                "hsn": "",
            }
            for line in order.lines
        ],
        "payment_method": "COD" if order.is_cash_on_delivery else "Prepaid",
        "sub_total": order.total,
        "total_discount": order.coin_discount or 0,
        "length": settings.package_length,
        "breadth": settings.package_breadth,
        "height": settings.package_height,
        "weight": settings.package_weight,
    }
    if settings.default_courier_id:
        payload["courier_id"] = settings.default_courier_id
        payload["courier_name"] = settings.default_courier_name
    return payload


def _dispatch_result(order: Order, already_dispatched: bool) -> dict:
    return {
        "order_id": str(order.id),
        "shiprocket_order_id": order.shiprocket_order_id,
        "shiprocket_shipment_id": order.shiprocket_shipment_id,
        "awb_code": order.awb_code,
        "courier_name": order.courier_name,
        "status": order.status,
        "already_dispatched": already_dispatched,
        "awb_error": order.dispatch_error if order.is_dispatched and not order.awb_code else None,
    }


def _call_with_retries(call, order_id, step, max_attempts, backoff_seconds, sleep):
    """Run ``call`` until it succeeds, fails for good or runs out of attempts.

    Returns ``(result, attempts, last_error)``; ``result`` is None on failure.
    """
    attempts = 0
    last_error = None
    while attempts < max_attempts:
        attempts += 1
        try:
            return call(), attempts, None
        except CarrierError as exc:
            last_error = exc
            logger.warning(
                "carrier_call_attempt_failed",
                order_id=str(order_id),
                step=step,
                attempt=attempts,
                reason=exc.reason,
                retryable=exc.retryable,
            )
            if not exc.retryable or attempts >= max_attempts:
                break
            sleep(backoff_seconds * (2 ** (attempts - 1)))
    return None, attempts, last_error


def _assign_awb(order_id, carrier, courier_id, max_attempts, backoff_seconds, sleep) -> None:
    """Assign an AWB to the order's existing shipment. Never creates a shipment."""
    order = current_domain.repository_for(Order).get(order_id)
    assignment, attempts, error = _call_with_retries(
        lambda: carrier.assign_awb(order.shiprocket_shipment_id, courier_id),
        order_id,
        "assign_awb",
        max_attempts,
        backoff_seconds,
        sleep,
    )
    if error is not None:
        current_domain.process(RecordAwbFailure(order_id=str(order_id), reason=error.reason), asynchronous=False)
        logger.error(
            "awb_assignment_failed",
            order_id=str(order_id),
            shipment_id=order.shiprocket_shipment_id,
            attempts=attempts,
            reason=error.reason,
        )
        return

    current_domain.process(
        RecordAwb(order_id=str(order_id), awb_code=assignment.awb_code, courier_name=assignment.courier_name),
        asynchronous=False,
    )
    logger.info("awb_assigned", order_id=str(order_id), awb_code=assignment.awb_code, attempts=attempts)


def push_order_to_carrier(order_id, carrier=None, max_attempts=None, backoff_seconds=None, sleep=time.sleep) -> dict:
    """Create the carrier shipment for ``order_id`` once, then assign its AWB.

    The shipment ids are stored as soon as the carrier returns them, so a
    failing AWB assignment is retried on its own. Pushing a dispatched order
    that still lacks an AWB retries only the assignment.
    """
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    max_attempts = max_attempts or _max_attempts()
    backoff_seconds = _backoff_seconds() if backoff_seconds is None else backoff_seconds
    settings = load_shipping_settings()

    if order.is_dispatched:
        if not order.awb_code and settings.default_courier_id:
            carrier = carrier or get_carrier()
            _assign_awb(order_id, carrier, settings.default_courier_id, max_attempts, backoff_seconds, sleep)
            order = repo.get(order_id)
        return _dispatch_result(order, already_dispatched=True)

    if OrderStatus(order.status) not in (OrderStatus.PENDING, OrderStatus.PROCESSING):
        raise ValidationError({"status": [f"Cannot ship an order that is {order.status}"]})

    carrier = carrier or get_carrier()
    payload = build_shipment_request(order, settings)
    shipment, attempts, last_error = _call_with_retries(
        lambda: carrier.create_shipment(payload),
        order_id,
        "create_shipment",
        max_attempts,
        backoff_seconds,
        sleep,
    )

    if last_error is not None:
        current_domain.process(
            RecordDispatchFailure(order_id=str(order_id), reason=last_error.reason, attempts=attempts),
            asynchronous=False,
        )
        logger.error(
            "order_push_to_carrier_failed",
            order_id=str(order_id),
            attempts=attempts,
            reason=last_error.reason,
        )
        raise ExternalServiceError(
            CARRIER_SERVICE,
            last_error.reason,
            retryable=last_error.retryable,
            attempts=attempts,
        ) from last_error

    current_domain.process(
        RecordDispatch(
            order_id=str(order_id),
            shiprocket_order_id=shipment.carrier_order_id,
            shiprocket_shipment_id=shipment.shipment_id,
            awb_code=shipment.awb_code,
            courier_name=shipment.courier_name,
            attempts=attempts,
        ),
        asynchronous=False,
    )
    logger.info(
        "order_pushed_to_carrier",
        order_id=str(order_id),
        shipment_id=shipment.shipment_id,
        attempts=attempts,
    )

    if not shipment.awb_code and payload.get("courier_id"):
        _assign_awb(order_id, carrier, payload["courier_id"], max_attempts, backoff_seconds, sleep)

    return _dispatch_result(repo.get(order_id), already_dispatched=False)


def sync_tracking(order_id, carrier=None) -> dict:
    """Pull the carrier's tracking status onto the order."""
    order = current_domain.repository_for(Order).get(order_id)
    if not order.awb_code:
        raise ValidationError({"awb_code": ["Order has no AWB to track yet"]})

    carrier = carrier or get_carrier()
    try:
        tracking = carrier.track(order.awb_code)
    except CarrierError as exc:
        logger.error("tracking_sync_failed", order_id=str(order_id), reason=exc.reason)
        raise ExternalServiceError(CARRIER_SERVICE, exc.reason, retryable=exc.retryable) from exc

    status = current_domain.process(
        RecordTracking(order_id=str(order_id), tracking_status=tracking.status, awb_code=tracking.awb_code),
        asynchronous=False,
    )
    return {
        "order_id": str(order_id),
        "tracking_status": tracking.status,
        "status": status,
        "events": list(tracking.events),
    }


def cancel_carrier_shipment(order, carrier=None) -> None:
    """Cancel the carrier order behind ``order`` before the order itself is cancelled.

    Refuses orders that can no longer be cancelled, so a shipped order keeps
    its live carrier shipment.
    """
    order.assert_cancellable()
    if not order.shiprocket_order_id:
        return
    carrier = carrier or get_carrier()
    try:
        carrier.cancel([order.shiprocket_order_id])
    except CarrierError as exc:
        logger.error("carrier_cancel_failed", order_id=str(order.id), reason=exc.reason)
        raise ExternalServiceError(CARRIER_SERVICE, exc.reason, retryable=exc.retryable) from exc


def list_couriers(carrier=None) -> list[dict]:
    carrier = carrier or get_carrier()
    try:
        return carrier.list_couriers()
    except CarrierError as exc:
        raise ExternalServiceError(CARRIER_SERVICE, exc.reason, retryable=exc.retryable) from exc
