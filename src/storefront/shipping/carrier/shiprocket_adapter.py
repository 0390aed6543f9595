"""Shiprocket adapter — live carrier integration over the Shiprocket REST API.

Auth tokens from ``/auth/login`` are valid for 10 days; the adapter reuses
one for 9 days and logs in again on expiry or on a 401.
"""

import os
import threading
from datetime import UTC, datetime, timedelta

import requests
import structlog

from storefront.shipping.carrier.port import (
    AwbAssignment,
    CarrierError,
    CarrierPort,
    ShipmentResult,
    TrackingResult,
)

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://apiv2.shiprocket.in/v1/external"
TOKEN_TTL = timedelta(days=9)


class ShiprocketCarrier(CarrierPort):
    def __init__(self, email: str, password: str, base_url: str = DEFAULT_BASE_URL, timeout: float = 15.0):
        self.email = email
        self.password = password
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self._token = None
        self._token_expires_at = None
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls) -> "ShiprocketCarrier":
        email = os.environ.get("SHIPROCKET_EMAIL")
        password = os.environ.get("SHIPROCKET_PASSWORD")
        if not email or not password:
            raise ValueError("SHIPROCKET_EMAIL and SHIPROCKET_PASSWORD must be set for the shiprocket adapter")
        return cls(
            email=email,
            password=password,
            base_url=os.environ.get("SHIPROCKET_BASE_URL", DEFAULT_BASE_URL),
            timeout=float(os.environ.get("SHIPROCKET_TIMEOUT", "15")),
        )

    # -------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------
    def _login(self) -> str:
        try:
            resp = self.session.post(
                f"{self.base_url}/auth/login",
                json={"email": self.email, "password": self.password},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise CarrierError(f"Shiprocket login failed: {exc}", retryable=True) from exc

        if resp.status_code != 200:
            raise CarrierError(
                f"Shiprocket login rejected ({resp.status_code})",
                retryable=resp.status_code >= 500,
                status_code=resp.status_code,
            )

        token = resp.json().get("token")
        if not token:
            raise CarrierError("Shiprocket login returned no token", retryable=False)

        self._token = token
        self._token_expires_at = datetime.now(UTC) + TOKEN_TTL
        logger.info("shiprocket_token_refreshed", expires_at=self._token_expires_at.isoformat())
        return token

    def _auth_token(self, force: bool = False) -> str:
        with self._lock:
            if force or not self._token or datetime.now(UTC) >= self._token_expires_at:
                return self._login()
            return self._token

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        for attempt in (1, 2):
            headers = {"Authorization": f"Bearer {self._auth_token(force=attempt == 2)}"}
            try:
                resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
            except requests.RequestException as exc:
                raise CarrierError(f"Shiprocket {method} {path} failed: {exc}", retryable=True) from exc

            if resp.status_code == 401 and attempt == 1:
                continue
            break

        if resp.status_code >= 400:
            try:
                detail = resp.json().get("message") or resp.text
            except ValueError:
                detail = resp.text
            raise CarrierError(
                f"Shiprocket {method} {path} returned {resp.status_code}: {detail}",
                retryable=resp.status_code >= 500 or resp.status_code == 429,
                status_code=resp.status_code,
            )
        return resp.json()

    # -------------------------------------------------------------------
    # Port implementation
    # -------------------------------------------------------------------
    def create_shipment(self, payload: dict) -> ShipmentResult:
        body = {k: v for k, v in payload.items() if k not in ("courier_id", "courier_name")}
        data = self._request("POST", "/orders/create/adhoc", json=body)

        carrier_order_id = data.get("order_id")
        shipment_id = data.get("shipment_id")
        if not carrier_order_id or not shipment_id:
            raise CarrierError(f"Shiprocket did not return shipment ids: {data}", retryable=False)

        return ShipmentResult(
            carrier_order_id=str(carrier_order_id),
            shipment_id=str(shipment_id),
            awb_code=data.get("awb_code") or None,
            courier_name=data.get("courier_name") or None,
            status=data.get("status"),
        )

    def assign_awb(self, shipment_id: str, courier_id: int) -> AwbAssignment:
        data = self._request(
            "POST",
            "/courier/assign/awb",
            json={"shipment_id": int(shipment_id), "courier_id": courier_id},
        )
        awb_data = (data.get("response") or {}).get("data") or {}
        awb_code = awb_data.get("awb_code")
        if not awb_code:
            # Shiprocket answers 200 with awb_assign_status 0 when the courier refuses
            raise CarrierError(f"Shiprocket assigned no AWB: {data.get('message') or data}", retryable=False)
        return AwbAssignment(awb_code=str(awb_code), courier_name=awb_data.get("courier_name") or None)

    def track(self, awb_code: str) -> TrackingResult:
        data = self._request("GET", f"/courier/track/awb/{awb_code}")
        tracking = data.get("tracking_data") or {}
        shipments = tracking.get("shipment_track") or [{}]
        activities = tracking.get("shipment_track_activities") or []
        return TrackingResult(
            status=shipments[0].get("current_status") or "Unknown",
            awb_code=awb_code,
            events=tuple(
                {"status": a.get("activity"), "location": a.get("location"), "date": a.get("date")}
                for a in activities
            ),
        )

    def cancel(self, carrier_order_ids: list[str]) -> None:
        self._request("POST", "/orders/cancel", json={"ids": [int(i) for i in carrier_order_ids]})

    def list_couriers(self) -> list[dict]:
        data = self._request("GET", "/courier/courierListWithCounts")
        return [
            {"id": c.get("id"), "name": c.get("name")}
            for c in data.get("courier_data", [])
        ]
