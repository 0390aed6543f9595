"""Tests for the ShoppingCart aggregate."""

import json

import pytest
from protean.exceptions import ValidationError

from storefront.cart.cart import ShoppingCart
from storefront.cart.events import CartCheckedOut, CartItemAdded, CartQuantityUpdated


@pytest.fixture
def cart():
    return ShoppingCart.create("user-001")


class TestAddItem:
    def test_add_new_line(self, cart):
        item = cart.add_item("prod-001", 2)
        assert len(cart.items) == 1
        assert item.quantity == 2

    def test_same_product_merges_into_one_line(self, cart):
        cart.add_item("prod-001", 1)
        cart.add_item("prod-001", 2)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3

    def test_event_carries_line_quantity(self, cart):
        cart.add_item("prod-001", 1)
        cart.add_item("prod-001", 2)
        event = cart._events[-1]
        assert isinstance(event, CartItemAdded)
        assert event.quantity == 2
        assert event.line_quantity == 3

    def test_different_variants_are_separate_lines(self, cart):
        cart.add_item("prod-001", 1, variant_id="var-s")
        cart.add_item("prod-001", 1, variant_id="var-m")
        assert len(cart.items) == 2

    def test_quantity_must_be_positive(self, cart):
        with pytest.raises(ValidationError):
            cart.add_item("prod-001", 0)


class TestUpdateAndRemove:
    def test_update_quantity(self, cart):
        item = cart.add_item("prod-001", 1)
        cart.update_item_quantity(str(item.id), 4)
        assert cart.items[0].quantity == 4
        assert isinstance(cart._events[-1], CartQuantityUpdated)

    def test_update_to_zero_refused(self, cart):
        item = cart.add_item("prod-001", 1)
        with pytest.raises(ValidationError):
            cart.update_item_quantity(str(item.id), 0)

    def test_update_unknown_item(self, cart):
        with pytest.raises(ValidationError):
            cart.update_item_quantity("missing", 2)

    def test_remove_item(self, cart):
        item = cart.add_item("prod-001", 1)
        cart.remove_item(str(item.id))
        assert len(cart.items) == 0

    def test_clear(self, cart):
        cart.add_item("prod-001", 1)
        cart.add_item("prod-002", 1)
        cart.clear()
        assert len(cart.items) == 0


class TestConsume:
    def test_consume_removes_snapshotted_lines(self, cart):
        cart.add_item("prod-001", 2)
        snapshot = cart.snapshot()
        cart.consume(snapshot, "order-001")
        assert len(cart.items) == 0
        event = cart._events[-1]
        assert isinstance(event, CartCheckedOut)
        assert json.loads(event.item_ids) == [snapshot[0]["item_id"]]

    def test_lines_added_after_snapshot_survive(self, cart):
        cart.add_item("prod-001", 1)
        snapshot = cart.snapshot()
        cart.add_item("prod-002", 1)
        cart.consume(snapshot, "order-001")
        assert [str(i.product_id) for i in cart.items] == ["prod-002"]

    def test_quantity_added_after_snapshot_is_kept(self, cart):
        cart.add_item("prod-001", 1)
        snapshot = cart.snapshot()
        cart.add_item("prod-001", 2)
        cart.consume(snapshot, "order-001")
        assert cart.items[0].quantity == 2
