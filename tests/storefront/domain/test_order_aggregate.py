"""Tests for the Order aggregate: placement, transitions, cancellation and dispatch."""

import pytest
from protean.exceptions import ValidationError

from storefront.errors import InvalidAddress
from storefront.order.events import OrderAwbAssigned, OrderCancelled, OrderDispatched
from storefront.order.order import DispatchStatus, Order, OrderStatus, validate_address

ADDRESS = {
    "name": "Asha Verma",
    "phone": "9876543210",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}


def _order(**overrides):
    defaults = {
        "user_id": "user-001",
        "lines": [
            {
                "product_id": "prod-001",
                "name": "Cotton Kurta",
                "quantity": 2,
                "unit_price": 500.0,
            }
        ],
        "shipping_address": ADDRESS,
        "subtotal": 1000.0,
        "total": 990.0,
        "coins_redeemed": 100,
        "coin_discount": 10.0,
    }
    defaults.update(overrides)
    return Order.place(**defaults)


class TestValidateAddress:
    def test_valid_address_is_normalised(self):
        cleaned = validate_address({**ADDRESS, "city": "  Bengaluru  "})
        assert cleaned["city"] == "Bengaluru"
        assert cleaned["country"] == "India"

    def test_missing_fields(self):
        with pytest.raises(InvalidAddress) as exc:
            validate_address({"name": "Asha"})
        assert "pincode" in exc.value.messages
        assert "phone" in exc.value.messages

    def test_bad_pincode(self):
        with pytest.raises(InvalidAddress):
            validate_address({**ADDRESS, "pincode": "5600"})

    def test_short_phone(self):
        with pytest.raises(InvalidAddress):
            validate_address({**ADDRESS, "phone": "12345"})

    def test_invalid_address_is_a_validation_error(self):
        assert issubclass(InvalidAddress, ValidationError)


class TestPlace:
    def test_new_order_is_pending_and_unshipped(self):
        order = _order()
        assert order.status == OrderStatus.PENDING.value
        assert order.dispatch_status == DispatchStatus.UNSHIPPED.value
        assert order.lines[0].line_total == 1000.0

    def test_order_needs_lines(self):
        with pytest.raises(ValidationError):
            _order(lines=[])


class TestTransitions:
    def test_forward_path(self):
        order = _order()
        order.change_status("processing")
        order.change_status("shipped")
        order.change_status("delivered")
        assert order.status == OrderStatus.DELIVERED.value

    def test_cannot_skip_to_delivered(self):
        with pytest.raises(ValidationError):
            _order().change_status("delivered")

    def test_cancel_via_change_status_refused(self):
        with pytest.raises(ValidationError):
            _order().change_status("cancelled")

    def test_cancel_pending(self):
        order = _order()
        order.cancel("Changed my mind")
        assert order.status == OrderStatus.CANCELLED.value
        assert isinstance(order._events[-1], OrderCancelled)

    def test_cannot_cancel_shipped(self):
        order = _order()
        order.change_status("processing")
        order.change_status("shipped")
        with pytest.raises(ValidationError):
            order.cancel()

    def test_delivered_is_terminal(self):
        order = _order()
        for status in ("processing", "shipped", "delivered"):
            order.change_status(status)
        with pytest.raises(ValidationError):
            order.change_status("processing")


class TestDispatch:
    def test_record_dispatch_moves_to_processing(self):
        order = _order()
        order.record_dispatch("100001", "900001", awb_code="AWB1", courier_name="Delhivery")
        assert order.is_dispatched
        assert order.status == OrderStatus.PROCESSING.value
        assert any(isinstance(e, OrderDispatched) for e in order._events)

    def test_second_dispatch_refused(self):
        order = _order()
        order.record_dispatch("100001", "900001")
        with pytest.raises(ValidationError):
            order.record_dispatch("100002", "900002")

    def test_awb_recorded_on_existing_shipment(self):
        order = _order()
        order.record_dispatch("100001", "900001")
        order.record_awb_failure("Courier busy")

        order.record_awb("AWB1", courier_name="Delhivery")

        assert order.awb_code == "AWB1"
        assert order.courier_name == "Delhivery"
        assert order.dispatch_error is None
        assert any(isinstance(e, OrderAwbAssigned) for e in order._events)

    def test_awb_needs_a_shipment(self):
        with pytest.raises(ValidationError):
            _order().record_awb("AWB1")

    def test_awb_is_assigned_once(self):
        order = _order()
        order.record_dispatch("100001", "900001", awb_code="AWB1")
        with pytest.raises(ValidationError):
            order.record_awb("AWB2")

    def test_failure_is_recorded(self):
        order = _order()
        order.record_dispatch_failure("Pincode not serviceable", attempts=3)
        assert order.dispatch_status == DispatchStatus.FAILED.value
        assert order.dispatch_attempts == 3
        assert order.status == OrderStatus.PENDING.value

    def test_tracking_drives_status(self):
        order = _order()
        order.record_dispatch("100001", "900001", awb_code="AWB1")
        order.record_tracking("In Transit")
        assert order.status == OrderStatus.SHIPPED.value
        order.record_tracking("Delivered")
        assert order.status == OrderStatus.DELIVERED.value
