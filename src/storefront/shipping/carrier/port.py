"""Carrier port — abstract interface for shipping carrier integrations.

All carrier adapters must implement this interface. The dispatch code
programs against the port; adapters are swapped via configuration.
Adapters report failures by raising ``CarrierError``, never by returning an
error payload.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class CarrierError(Exception):
    """A carrier call failed.

    ``retryable`` is False for rejections that will fail the same way again
    (bad payload, bad credentials), True for timeouts and 5xx responses.
    """

    def __init__(self, reason: str, retryable: bool = True, status_code: int | None = None):
        super().__init__(reason)
        self.reason = reason
        self.retryable = retryable
        self.status_code = status_code


@dataclass(frozen=True)
class ShipmentResult:
    """Identifiers the carrier assigned to a new shipment."""

    carrier_order_id: str
    shipment_id: str
    awb_code: str | None = None
    courier_name: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class AwbAssignment:
    awb_code: str
    courier_name: str | None = None


@dataclass(frozen=True)
class TrackingResult:
    status: str
    awb_code: str | None = None
    events: tuple[dict, ...] = ()


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def create_shipment(self, payload: dict) -> ShipmentResult:
        """Create a carrier order + shipment from an adhoc order payload.

        Does not assign an AWB; carriers that assign one on creation return it
        on the result.
        """
        ...

    @abstractmethod
    def assign_awb(self, shipment_id: str, courier_id: int) -> AwbAssignment:
        """Assign an AWB from ``courier_id`` to an existing shipment."""
        ...

    @abstractmethod
    def track(self, awb_code: str) -> TrackingResult:
        """Current tracking status for an AWB."""
        ...

    @abstractmethod
    def cancel(self, carrier_order_ids: list[str]) -> None:
        """Cancel carrier orders."""
        ...

    @abstractmethod
    def list_couriers(self) -> list[dict]:
        """Couriers available to the account, as ``{"id", "name"}`` dicts."""
        ...
