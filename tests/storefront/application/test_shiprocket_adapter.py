"""Shiprocket adapter against a stubbed HTTP session.

The session is replaced with a MagicMock whose ``request`` answers by URL, so
the tests see exactly which Shiprocket endpoints each operation calls.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests
from protean import current_domain

from storefront.order.order import DispatchStatus, Order
from storefront.shipping.carrier.port import CarrierError
from storefront.shipping.carrier.shiprocket_adapter import ShiprocketCarrier
from storefront.shipping.dispatch import push_order_to_carrier
from storefront.shipping.settings import UpdateShippingSettings

BASE_URL = "https://shiprocket.test/v1/external"


def _response(status_code, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body if body is not None else {}
    response.text = json.dumps(body or {})
    return response


def _carrier(routes):
    """Carrier whose session answers ``routes[(method, path)]`` in order."""
    carrier = ShiprocketCarrier("ops@lelekart.test", "secret", base_url=BASE_URL)
    carrier.session = MagicMock()
    carrier.session.post.return_value = _response(200, {"token": "tok-1"})
    queues = {key: list(value) for key, value in routes.items()}

    def request(method, url, **kwargs):
        key = (method, url.removeprefix(BASE_URL))
        answers = queues[key]
        answer = answers.pop(0) if len(answers) > 1 else answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer

    carrier.session.request.side_effect = request
    return carrier


def _calls(carrier, method, path):
    return [c for c in carrier.session.request.call_args_list if c.args == (method, f"{BASE_URL}{path}")]


ADHOC_OK = _response(200, {"order_id": 4410021, "shipment_id": 4390017, "status": "NEW"})
AWB_OK = _response(
    200,
    {"awb_assign_status": 1, "response": {"data": {"awb_code": "141123221084922", "courier_name": "Delhivery"}}},
)


class TestShipmentCalls:
    def test_create_shipment_only_creates_the_order(self):
        carrier = _carrier({("POST", "/orders/create/adhoc"): [ADHOC_OK]})

        result = carrier.create_shipment({"order_id": "o-1", "courier_id": 12, "courier_name": "Delhivery"})

        assert result.carrier_order_id == "4410021"
        assert result.shipment_id == "4390017"
        assert result.awb_code is None
        sent = _calls(carrier, "POST", "/orders/create/adhoc")[0].kwargs["json"]
        assert "courier_id" not in sent
        assert "courier_name" not in sent
        assert carrier.session.request.call_count == 1

    def test_missing_shipment_ids_are_rejected(self):
        carrier = _carrier({("POST", "/orders/create/adhoc"): [_response(200, {"status": "NEW"})]})

        with pytest.raises(CarrierError) as exc_info:
            carrier.create_shipment({"order_id": "o-1"})

        assert exc_info.value.retryable is False

    def test_assign_awb(self):
        carrier = _carrier({("POST", "/courier/assign/awb"): [AWB_OK]})

        assignment = carrier.assign_awb("4390017", 12)

        assert assignment.awb_code == "141123221084922"
        assert assignment.courier_name == "Delhivery"
        sent = _calls(carrier, "POST", "/courier/assign/awb")[0].kwargs["json"]
        assert sent == {"shipment_id": 4390017, "courier_id": 12}

    def test_refused_awb_is_not_retryable(self):
        carrier = _carrier(
            {("POST", "/courier/assign/awb"): [_response(200, {"awb_assign_status": 0, "message": "Not serviceable"})]}
        )

        with pytest.raises(CarrierError) as exc_info:
            carrier.assign_awb("4390017", 12)

        assert exc_info.value.retryable is False
        assert "Not serviceable" in exc_info.value.reason

    def test_track_reads_current_status_and_activities(self):
        body = {
            "tracking_data": {
                "shipment_track": [{"current_status": "Out For Delivery"}],
                "shipment_track_activities": [
                    {"activity": "Out for delivery", "location": "Bengaluru", "date": "2026-10-18 09:12:00"}
                ],
            }
        }
        carrier = _carrier({("GET", "/courier/track/awb/141123221084922"): [_response(200, body)]})

        tracking = carrier.track("141123221084922")

        assert tracking.status == "Out For Delivery"
        assert tracking.events[0]["location"] == "Bengaluru"

    def test_cancel_sends_numeric_ids(self):
        carrier = _carrier({("POST", "/orders/cancel"): [_response(200, {})]})

        carrier.cancel(["4410021"])

        assert _calls(carrier, "POST", "/orders/cancel")[0].kwargs["json"] == {"ids": [4410021]}


class TestAuthAndErrors:
    def test_token_is_reused_between_calls(self):
        carrier = _carrier({("GET", "/courier/courierListWithCounts"): [_response(200, {"courier_data": []})]})

        carrier.list_couriers()
        carrier.list_couriers()

        assert carrier.session.post.call_count == 1
        headers = carrier.session.request.call_args.kwargs["headers"]
        assert headers == {"Authorization": "Bearer tok-1"}

    def test_unauthorized_call_logs_in_again_once(self):
        carrier = _carrier(
            {("GET", "/courier/courierListWithCounts"): [_response(401), _response(200, {"courier_data": []})]}
        )

        assert carrier.list_couriers() == []
        assert carrier.session.post.call_count == 2
        assert carrier.session.request.call_count == 2

    def test_rejected_login_is_not_retryable(self):
        carrier = _carrier({})
        carrier.session.post.return_value = _response(403, {"message": "Invalid credentials"})

        with pytest.raises(CarrierError) as exc_info:
            carrier.list_couriers()

        assert exc_info.value.retryable is False
        assert exc_info.value.status_code == 403

    @pytest.mark.parametrize(
        "status_code, retryable",
        [(422, False), (429, True), (503, True)],
    )
    def test_error_status_sets_retryable(self, status_code, retryable):
        carrier = _carrier(
            {("POST", "/orders/create/adhoc"): [_response(status_code, {"message": "nope"})]}
        )

        with pytest.raises(CarrierError) as exc_info:
            carrier.create_shipment({"order_id": "o-1"})

        assert exc_info.value.retryable is retryable
        assert exc_info.value.status_code == status_code

    def test_connection_error_is_retryable(self):
        carrier = _carrier({("POST", "/orders/create/adhoc"): [requests.ConnectionError("reset by peer")]})

        with pytest.raises(CarrierError) as exc_info:
            carrier.create_shipment({"order_id": "o-1"})

        assert exc_info.value.retryable is True


class TestDispatchOverShiprocket:
    def _prefer_courier(self):
        current_domain.process(
            UpdateShippingSettings(changes=json.dumps({"default_courier_id": 12, "default_courier_name": "Delhivery"})),
            asynchronous=False,
        )

    def test_awb_outage_creates_the_shipment_once(self, place_order):
        self._prefer_courier()
        order_id = place_order().order_id
        carrier = _carrier(
            {
                ("POST", "/orders/create/adhoc"): [ADHOC_OK],
                ("POST", "/courier/assign/awb"): [_response(503, {"message": "Service unavailable"})],
            }
        )

        result = push_order_to_carrier(order_id, carrier=carrier, max_attempts=3, sleep=lambda _: None)

        assert len(_calls(carrier, "POST", "/orders/create/adhoc")) == 1
        assert len(_calls(carrier, "POST", "/courier/assign/awb")) == 3
        assert result["shiprocket_shipment_id"] == "4390017"
        assert result["awb_code"] is None
        order = current_domain.repository_for(Order).get(order_id)
        assert order.shiprocket_order_id == "4410021"
        assert order.dispatch_status == DispatchStatus.DISPATCHED.value

    def test_awb_recovers_on_retry(self, place_order):
        self._prefer_courier()
        order_id = place_order().order_id
        carrier = _carrier(
            {
                ("POST", "/orders/create/adhoc"): [ADHOC_OK],
                ("POST", "/courier/assign/awb"): [_response(503), AWB_OK],
            }
        )

        result = push_order_to_carrier(order_id, carrier=carrier, sleep=lambda _: None)

        assert len(_calls(carrier, "POST", "/orders/create/adhoc")) == 1
        assert result["awb_code"] == "141123221084922"
        assert result["courier_name"] == "Delhivery"
