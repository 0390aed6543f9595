"""Wallet program settings — a single row edited by admins."""

import json
from datetime import UTC, datetime

from protean import handle, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront

SETTINGS_KEY = "default"

_SETTINGS_FIELDS = (
    "first_purchase_coins",
    "coin_expiry_days",
    "conversion_rate",
    "max_usage_percentage",
    "min_cart_value",
    "applicable_categories",
    "is_active",
)


@storefront.aggregate
class WalletSettings:
    key = Identifier(identifier=True, default=SETTINGS_KEY)
    first_purchase_coins = Integer(default=0, min_value=0)
    coin_expiry_days = Integer(default=90, min_value=1)
    conversion_rate = Float(default=10.0)  # coins per 1 rupee
    max_usage_percentage = Float(default=20.0, min_value=0.0, max_value=100.0)
    min_cart_value = Float(default=0.0, min_value=0.0)
    applicable_categories = String(max_length=1000, default="")  # comma separated, blank = all
    is_active = Boolean(default=True)
    updated_at = DateTime()

    @invariant.post
    def conversion_rate_must_be_positive(self):
        if self.conversion_rate is None or self.conversion_rate <= 0:
            raise ValidationError({"conversion_rate": ["Conversion rate must be greater than zero"]})

    def as_dict(self) -> dict:
        return {field: getattr(self, field) for field in _SETTINGS_FIELDS}


def load_wallet_settings() -> WalletSettings:
    """Persisted settings, or the defaults when an admin never saved any."""
    try:
        return current_domain.repository_for(WalletSettings).get(SETTINGS_KEY)
    except ObjectNotFoundError:
        return WalletSettings(key=SETTINGS_KEY)


@storefront.command(part_of=WalletSettings)
class UpdateWalletSettings:
    changes = Text(required=True)  # JSON object of the fields to change


@storefront.command_handler(part_of=WalletSettings)
class WalletSettingsHandler:
    @handle(UpdateWalletSettings)
    def update_settings(self, command):
        changes = json.loads(command.changes)
        unknown = set(changes) - set(_SETTINGS_FIELDS)
        if unknown:
            raise ValidationError({"settings": [f"Unknown settings: {', '.join(sorted(unknown))}"]})

        settings = load_wallet_settings()
        for field, value in changes.items():
            setattr(settings, field, value)
        settings.updated_at = datetime.now(UTC)

        current_domain.repository_for(WalletSettings).add(settings)
        return settings.as_dict()
