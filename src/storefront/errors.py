"""Storefront error taxonomy.

Every failure that crosses the API boundary carries enough detail for the
caller to decide whether to retry. Field-level input problems stay Protean
``ValidationError``s so they keep Protean's 400 handler.
"""

from protean.exceptions import ValidationError


class InvalidAddress(ValidationError):
    """Shipping address is missing required fields."""


class StorefrontError(Exception):
    code = "storefront_error"
    retryable = False

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
            **self.details,
        }


class InsufficientStock(StorefrontError):
    """One or more lines ask for more units than the product holds.

    ``lines`` is a list of ``{"product_id", "variant_id", "requested", "available"}``.
    """

    code = "insufficient_stock"

    def __init__(self, lines: list[dict]):
        names = ", ".join(line["product_id"] for line in lines)
        super().__init__(f"Insufficient stock for: {names}", lines=lines)
        self.lines = lines


class InsufficientFunds(StorefrontError):
    code = "insufficient_funds"

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Wallet holds {available} coins, {requested} requested",
            requested=requested,
            available=available,
        )
        self.requested = requested
        self.available = available


class ExternalServiceError(StorefrontError):
    code = "external_service_error"

    def __init__(self, service: str, reason: str, retryable: bool = True, attempts: int = 1):
        super().__init__(
            f"{service} failed: {reason}",
            service=service,
            reason=reason,
            attempts=attempts,
        )
        self.service = service
        self.reason = reason
        self.retryable = retryable
        self.attempts = attempts


class ConflictError(StorefrontError):
    """A concurrent writer won, or the same request is still being processed."""

    code = "conflict"
    retryable = True

    def __init__(self, resource: str, reason: str):
        super().__init__(f"{resource}: {reason}", resource=resource)
        self.resource = resource
        self.reason = reason
