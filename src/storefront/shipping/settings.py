"""Shiprocket settings for the store — written by admins only."""

import json
from datetime import UTC, datetime

from protean import handle, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront

SETTINGS_KEY = "default"

_SETTINGS_FIELDS = (
    "auto_ship",
    "default_courier_id",
    "default_courier_name",
    "preferred_couriers",
    "return_address",
    "notify_customers",
    "pickup_location",
    "package_length",
    "package_breadth",
    "package_height",
    "package_weight",
)


@storefront.aggregate
class ShiprocketSettings:
    key = Identifier(identifier=True, default=SETTINGS_KEY)
    auto_ship = Boolean(default=False)
    default_courier_id = Integer()
    default_courier_name = String(max_length=100)
    preferred_couriers = String(max_length=500)  # comma separated courier names
    return_address = Text()
    notify_customers = Boolean(default=True)
    pickup_location = String(max_length=100, default="Primary")
    package_length = Float(default=10.0, min_value=0.5)
    package_breadth = Float(default=10.0, min_value=0.5)
    package_height = Float(default=10.0, min_value=0.5)
    package_weight = Float(default=0.5, min_value=0.01)
    updated_at = DateTime()

    @invariant.post
    def return_address_must_be_complete(self):
        if self.return_address and len(self.return_address.strip()) < 10:
            raise ValidationError({"return_address": ["Return address must be at least 10 characters"]})

    def as_dict(self) -> dict:
        return {field: getattr(self, field) for field in _SETTINGS_FIELDS}


def load_shipping_settings() -> ShiprocketSettings:
    try:
        return current_domain.repository_for(ShiprocketSettings).get(SETTINGS_KEY)
    except ObjectNotFoundError:
        return ShiprocketSettings(key=SETTINGS_KEY)


@storefront.command(part_of=ShiprocketSettings)
class UpdateShippingSettings:
    changes = Text(required=True)  # JSON object


@storefront.command_handler(part_of=ShiprocketSettings)
class ShippingSettingsHandler:
    @handle(UpdateShippingSettings)
    def update_settings(self, command):
        changes = json.loads(command.changes)
        unknown = set(changes) - set(_SETTINGS_FIELDS)
        if unknown:
            raise ValidationError({"settings": [f"Unknown settings: {', '.join(sorted(unknown))}"]})

        settings = load_shipping_settings()
        for field, value in changes.items():
            setattr(settings, field, value)
        settings.updated_at = datetime.now(UTC)

        current_domain.repository_for(ShiprocketSettings).add(settings)
        return settings.as_dict()
