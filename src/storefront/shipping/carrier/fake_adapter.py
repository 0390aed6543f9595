"""Fake carrier adapter — deterministic carrier for testing and development.

Generates Shiprocket-shaped order ids, shipment ids and AWBs. Can be told
to fail every call, or only the first few, to exercise dispatch retries.
Shipments created with a ``courier_id`` come back without an AWB, as they do
from Shiprocket, and need ``assign_awb``.
"""

from uuid import uuid4

from storefront.shipping.carrier.port import (
    AwbAssignment,
    CarrierError,
    CarrierPort,
    ShipmentResult,
    TrackingResult,
)


class FakeCarrier(CarrierPort):
    """Fake carrier that always succeeds by default."""

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.retryable = True
        self.fail_times = None
        self.awb_fail_times = 0
        self.created: list[dict] = []
        self.cancelled: list[str] = []
        self.assigned: list[tuple[str, int]] = []
        self.tracking_status = "In Transit"
        self.create_calls = 0
        self.awb_calls = 0

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Carrier unavailable",
        retryable: bool = True,
        fail_times: int | None = None,
        tracking_status: str = "In Transit",
        awb_fail_times: int = 0,
    ):
        """Configure the fake carrier behavior for testing.

        ``fail_times`` makes only the first N create calls fail;
        ``awb_fail_times`` does the same for AWB assignment.
        """
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.retryable = retryable
        self.fail_times = fail_times
        self.tracking_status = tracking_status
        self.awb_fail_times = awb_fail_times

    def _maybe_fail(self):
        if self.fail_times is not None:
            if self.fail_times > 0:
                self.fail_times -= 1
                raise CarrierError(self.failure_reason, retryable=self.retryable, status_code=503)
            return
        if not self.should_succeed:
            raise CarrierError(self.failure_reason, retryable=self.retryable, status_code=503)

    def create_shipment(self, payload: dict) -> ShipmentResult:
        self.create_calls += 1
        self._maybe_fail()

        self.created.append(payload)
        if payload.get("courier_id"):
            awb_code, courier = None, None
        else:
            awb_code, courier = f"FAKE{uuid4().hex[:10].upper()}", "Fake Express"
        return ShipmentResult(
            carrier_order_id=str(100000 + len(self.created)),
            shipment_id=str(900000 + len(self.created)),
            awb_code=awb_code,
            courier_name=courier,
            status="NEW",
        )

    def assign_awb(self, shipment_id: str, courier_id: int) -> AwbAssignment:
        self.awb_calls += 1
        if self.awb_fail_times > 0:
            self.awb_fail_times -= 1
            raise CarrierError(self.failure_reason, retryable=self.retryable, status_code=503)

        self.assigned.append((shipment_id, courier_id))
        courier = next((c["name"] for c in self.list_couriers() if c["id"] == courier_id), "Fake Express")
        return AwbAssignment(awb_code=f"FAKE{uuid4().hex[:10].upper()}", courier_name=courier)

    def track(self, awb_code: str) -> TrackingResult:
        if not self.should_succeed:
            raise CarrierError(self.failure_reason, retryable=self.retryable)
        return TrackingResult(
            status=self.tracking_status,
            awb_code=awb_code,
            events=({"status": self.tracking_status, "location": "Hub, Delhi"},),
        )

    def cancel(self, carrier_order_ids: list[str]) -> None:
        if not self.should_succeed:
            raise CarrierError(self.failure_reason, retryable=self.retryable)
        self.cancelled.extend(carrier_order_ids)

    def list_couriers(self) -> list[dict]:
        return [
            {"id": 1, "name": "Fake Express"},
            {"id": 2, "name": "Fake Surface"},
        ]
