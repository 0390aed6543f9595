"""Cart item management — commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from storefront.cart.cart import ShoppingCart
from storefront.catalogue.product import Product
from storefront.domain import storefront


@storefront.command(part_of="ShoppingCart")
class AddToCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="ShoppingCart")
class UpdateCartItem:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="ShoppingCart")
class RemoveFromCart:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)


@storefront.command(part_of="ShoppingCart")
class ClearCart:
    user_id = Identifier(required=True)


def cart_for(user_id) -> ShoppingCart:
    """Load the user's cart, or hand back a fresh unsaved one."""
    try:
        return current_domain.repository_for(ShoppingCart).get(user_id)
    except ObjectNotFoundError:
        return ShoppingCart.create(user_id)


def _purchasable_product(product_id, variant_id):
    try:
        product = current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError:
        raise ValidationError({"product_id": [f"Product {product_id} does not exist"]}) from None

    if not product.is_purchasable:
        raise ValidationError({"product_id": [f"Product {product_id} is not available for purchase"]})
    if variant_id:
        product.variant(variant_id)
    return product


@storefront.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        _purchasable_product(command.product_id, command.variant_id)

        cart = cart_for(command.user_id)
        item = cart.add_item(
            product_id=command.product_id,
            variant_id=command.variant_id,
            quantity=command.quantity,
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(item.id)

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        cart = cart_for(command.user_id)
        cart.update_item_quantity(item_id=command.item_id, new_quantity=command.quantity)
        current_domain.repository_for(ShoppingCart).add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = cart_for(command.user_id)
        cart.remove_item(item_id=command.item_id)
        current_domain.repository_for(ShoppingCart).add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = cart_for(command.user_id)
        cart.clear()
        current_domain.repository_for(ShoppingCart).add(cart)
