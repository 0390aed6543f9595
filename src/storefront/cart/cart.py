"""Shopping Cart aggregate — one cart per user, keyed by the user id.

Lines are unique per (product, variant); adding the same pair again bumps the
quantity. Stock is not checked here: the cart is a wish list with
quantities, and availability is settled at checkout.
"""

import json
from datetime import UTC, datetime

from protean import atomic_change
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer

from storefront.cart.events import (
    CartCheckedOut,
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
)
from storefront.domain import storefront


def _same_variant(a, b) -> bool:
    return (str(a) if a else None) == (str(b) if b else None)


@storefront.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@storefront.aggregate
class ShoppingCart:
    user_id = Identifier(identifier=True)
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, created_at=now, updated_at=now)

    def find_item(self, item_id):
        return next((i for i in self.items if str(i.id) == str(item_id)), None)

    def snapshot(self) -> list[dict]:
        """Plain copy of the current lines, as checkout sees them."""
        return [
            {
                "item_id": str(item.id),
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "quantity": item.quantity,
            }
            for item in self.items
        ]

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, variant_id=None):
        """Add an item to the cart (or increase quantity if already present)."""
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and _same_variant(i.variant_id, variant_id)
            ),
            None,
        )

        now = datetime.now(UTC)

        if existing:
            existing.quantity += quantity
            item = existing
        else:
            item = CartItem(
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
                added_at=now,
            )
            self.add_items(item)

        self.updated_at = now

        self.raise_(
            CartItemAdded(
                user_id=str(self.user_id),
                item_id=str(item.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                line_quantity=item.quantity,
            )
        )
        return item

    def update_item_quantity(self, item_id, new_quantity):
        if new_quantity is None or new_quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        item = self.find_item(item_id)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        previous_quantity = item.quantity
        item.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                user_id=str(self.user_id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_id):
        item = self.find_item(item_id)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartItemRemoved(user_id=str(self.user_id), item_id=str(item_id)))

    def clear(self):
        now = datetime.now(UTC)
        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            self.updated_at = now

        self.raise_(CartCleared(user_id=str(self.user_id), cleared_at=now))

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def consume(self, lines, order_id):
        """Remove exactly the lines that went into ``order_id``.

        Lines added after the checkout snapshot was taken stay in the cart.
        A line whose quantity grew since the snapshot keeps the difference.
        """
        consumed = []
        with atomic_change(self):
            for entry in lines:
                item = self.find_item(entry["item_id"])
                if item is None:
                    continue
                if item.quantity > entry["quantity"]:
                    item.quantity -= entry["quantity"]
                else:
                    self.remove_items(item)
                consumed.append(entry["item_id"])
            self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCheckedOut(
                user_id=str(self.user_id),
                order_id=str(order_id),
                item_ids=json.dumps(consumed),
            )
        )
