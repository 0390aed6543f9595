"""Application tests for cart commands."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from storefront.cart.cart import ShoppingCart
from storefront.cart.items import AddToCart, ClearCart, RemoveFromCart, UpdateCartItem
from storefront.catalogue.management import CreateProduct


def _add(user_id, product_id, quantity=1, variant_id=None):
    return current_domain.process(
        AddToCart(user_id=user_id, product_id=product_id, variant_id=variant_id, quantity=quantity),
        asynchronous=False,
    )


class TestAddToCart:
    def test_first_add_creates_the_cart(self, make_product):
        product_id = make_product()
        item_id = _add("user-001", product_id, 2)

        cart = current_domain.repository_for(ShoppingCart).get("user-001")
        assert str(cart.items[0].id) == item_id
        assert cart.items[0].quantity == 2

    def test_unknown_product_is_refused(self):
        with pytest.raises(ValidationError):
            _add("user-001", "no-such-product")

    def test_unapproved_product_is_refused(self):
        product_id = current_domain.process(
            CreateProduct(seller_id="seller-001", name="Draft listing", price=100.0, stock=3),
            asynchronous=False,
        )
        with pytest.raises(ValidationError):
            _add("user-001", product_id)

    def test_unknown_variant_is_refused(self, make_product):
        with pytest.raises(ValidationError):
            _add("user-001", make_product(), variant_id="no-such-variant")

    def test_carts_are_per_user(self, make_product):
        product_id = make_product()
        _add("user-001", product_id)
        _add("user-002", product_id, 3)
        repo = current_domain.repository_for(ShoppingCart)
        assert repo.get("user-001").items[0].quantity == 1
        assert repo.get("user-002").items[0].quantity == 3


class TestUpdateAndRemove:
    def test_update_quantity(self, make_product):
        item_id = _add("user-001", make_product())
        current_domain.process(UpdateCartItem(user_id="user-001", item_id=item_id, quantity=4), asynchronous=False)
        cart = current_domain.repository_for(ShoppingCart).get("user-001")
        assert cart.items[0].quantity == 4

    def test_remove_item(self, make_product):
        item_id = _add("user-001", make_product())
        current_domain.process(RemoveFromCart(user_id="user-001", item_id=item_id), asynchronous=False)
        cart = current_domain.repository_for(ShoppingCart).get("user-001")
        assert len(cart.items) == 0

    def test_remove_unknown_item(self, make_product):
        _add("user-001", make_product())
        with pytest.raises(ValidationError):
            current_domain.process(RemoveFromCart(user_id="user-001", item_id="missing"), asynchronous=False)

    def test_clear(self, make_product):
        _add("user-001", make_product())
        _add("user-001", make_product(name="Jute Bag"))
        current_domain.process(ClearCart(user_id="user-001"), asynchronous=False)
        assert len(current_domain.repository_for(ShoppingCart).get("user-001").items) == 0
