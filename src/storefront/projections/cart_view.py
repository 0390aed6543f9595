"""Cart view — per-user cart read model served to the storefront UI."""

import json
from datetime import UTC, datetime

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, Text
from protean.utils.globals import current_domain

from storefront.cart.cart import ShoppingCart
from storefront.cart.events import (
    CartCheckedOut,
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
)
from storefront.domain import storefront


@storefront.projection
class CartView:
    user_id = Identifier(identifier=True, required=True)
    items = Text()  # JSON: list of {item_id, product_id, variant_id, quantity}
    item_count = Integer(default=0)
    total_quantity = Integer(default=0)
    updated_at = DateTime()


def _items(view) -> list[dict]:
    return json.loads(view.items) if view.items else []


def _store(repo, view, items) -> None:
    view.items = json.dumps(items)
    view.item_count = len(items)
    view.total_quantity = sum(i["quantity"] for i in items)
    view.updated_at = datetime.now(UTC)
    repo.add(view)


def _view_for(repo, user_id) -> CartView:
    try:
        return repo.get(user_id)
    except ObjectNotFoundError:
        return CartView(user_id=user_id, items="[]", item_count=0, total_quantity=0)


@storefront.projector(projector_for=CartView, aggregates=[ShoppingCart])
class CartViewProjector:
    @on(CartItemAdded)
    def on_item_added(self, event):
        repo = current_domain.repository_for(CartView)
        view = _view_for(repo, event.user_id)
        items = _items(view)

        existing = next((i for i in items if i["item_id"] == str(event.item_id)), None)
        if existing:
            existing["quantity"] = event.line_quantity
        else:
            items.append(
                {
                    "item_id": str(event.item_id),
                    "product_id": str(event.product_id),
                    "variant_id": str(event.variant_id) if event.variant_id else None,
                    "quantity": event.line_quantity,
                }
            )
        _store(repo, view, items)

    @on(CartQuantityUpdated)
    def on_quantity_updated(self, event):
        repo = current_domain.repository_for(CartView)
        view = _view_for(repo, event.user_id)
        items = _items(view)
        for item in items:
            if item["item_id"] == str(event.item_id):
                item["quantity"] = event.new_quantity
                break
        _store(repo, view, items)

    @on(CartItemRemoved)
    def on_item_removed(self, event):
        repo = current_domain.repository_for(CartView)
        view = _view_for(repo, event.user_id)
        _store(repo, view, [i for i in _items(view) if i["item_id"] != str(event.item_id)])

    @on(CartCleared)
    def on_cart_cleared(self, event):
        repo = current_domain.repository_for(CartView)
        _store(repo, _view_for(repo, event.user_id), [])

    @on(CartCheckedOut)
    def on_checked_out(self, event):
        # Checkout may leave a reduced quantity behind, so re-read the cart
        cart = current_domain.repository_for(ShoppingCart).get(event.user_id)
        repo = current_domain.repository_for(CartView)
        _store(repo, _view_for(repo, event.user_id), cart.snapshot())
