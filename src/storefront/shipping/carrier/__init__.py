"""Carrier adapter abstraction — pluggable shipping carrier integration."""

import os

_carrier_instance = None


def get_carrier():
    """Return the configured carrier adapter (singleton).

    Uses FakeCarrier by default. Set CARRIER_ADAPTER=shiprocket together
    with SHIPROCKET_EMAIL and SHIPROCKET_PASSWORD for the live API.
    """
    global _carrier_instance
    if _carrier_instance is None:
        adapter = os.environ.get("CARRIER_ADAPTER", "fake")
        if adapter == "fake":
            from storefront.shipping.carrier.fake_adapter import FakeCarrier

            _carrier_instance = FakeCarrier()
        elif adapter == "shiprocket":
            from storefront.shipping.carrier.shiprocket_adapter import ShiprocketCarrier

            _carrier_instance = ShiprocketCarrier.from_env()
        else:
            raise ValueError(f"Unknown carrier adapter: {adapter}")
    return _carrier_instance


def set_carrier(carrier):
    """Install a specific carrier adapter (tests, scripts)."""
    global _carrier_instance
    _carrier_instance = carrier


def reset_carrier():
    """Reset the carrier singleton (useful for testing)."""
    global _carrier_instance
    _carrier_instance = None
