"""Domain events for the ShoppingCart aggregate."""

from protean.fields import DateTime, Identifier, Integer, Text

from storefront.domain import storefront


@storefront.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the shopping cart."""

    __version__ = 1

    user_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    line_quantity = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    """The quantity of a cart item was changed."""

    __version__ = 1

    user_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartItemRemoved:
    """An item was removed from the shopping cart."""

    __version__ = 1

    user_id = Identifier(required=True)
    item_id = Identifier(required=True)


@storefront.event(part_of="ShoppingCart")
class CartCleared:
    __version__ = 1

    user_id = Identifier(required=True)
    cleared_at = DateTime(required=True)


@storefront.event(part_of="ShoppingCart")
class CartCheckedOut:
    """Checkout consumed the snapshotted lines into an order."""

    __version__ = 1

    user_id = Identifier(required=True)
    order_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON list of consumed cart item ids
