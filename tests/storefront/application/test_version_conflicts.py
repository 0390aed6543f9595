"""Optimistic concurrency on products and wallets, with real stale saves.

A concurrent writer is simulated by saving the same aggregate from another
thread, outside the unit of work that holds the stale copy.
"""

import threading
from unittest.mock import patch

import pytest
from protean import current_domain
from protean.exceptions import ExpectedVersionError

from storefront.cart.items import AddToCart
from storefront.catalogue.product import Product
from storefront.checkout.assembler import checkout, checkout_status
from storefront.checkout.attempt import AttemptState
from storefront.domain import storefront
from storefront.errors import ConflictError
from storefront.order.order import Order
from storefront.wallet.ledger import CreditCoins
from storefront.wallet.wallet import WalletAccount

USER = "buyer-001"


def _restock_elsewhere(product_id, quantity=1):
    """Save ``product_id`` from another thread, as a second API worker would."""
    errors = []

    def run():
        try:
            with storefront.domain_context():
                repo = current_domain.repository_for(Product)
                product = repo.get(product_id)
                product.restock(quantity)
                repo.add(product)
        except Exception as exc:  # surfaced in the calling test
            errors.append(exc)

    thread = threading.Thread(target=run)
    thread.start()
    thread.join()
    if errors:
        raise errors[0]


def _interleaved_reserve(times):
    """``Product.reserve_stock`` that lets another writer in first, ``times`` times."""
    original = Product.reserve_stock
    state = {"remaining": times}

    def reserve(product, quantity, variant_id=None):
        if state["remaining"] is None or state["remaining"] > 0:
            if state["remaining"] is not None:
                state["remaining"] -= 1
            _restock_elsewhere(str(product.id))
        return original(product, quantity, variant_id=variant_id)

    return patch.object(Product, "reserve_stock", autospec=True, side_effect=reserve)


def _prepare(make_product, coins=100, stock=5):
    product_id = make_product(price=500.0, stock=stock)
    current_domain.process(AddToCart(user_id=USER, product_id=product_id, quantity=2), asynchronous=False)
    current_domain.process(
        CreditCoins(user_id=USER, amount=coins, description="Promo", expires_in_days=30),
        asynchronous=False,
    )
    return product_id


class TestStaleAggregateSaves:
    def test_stale_product_save_is_refused(self, make_product):
        product_id = make_product(stock=5)
        repo = current_domain.repository_for(Product)
        first = repo.get(product_id)
        second = repo.get(product_id)

        first.reserve_stock(2)
        repo.add(first)
        second.reserve_stock(2)
        with pytest.raises(ExpectedVersionError):
            repo.add(second)

        assert repo.get(product_id).stock == 3

    def test_stale_wallet_save_is_refused(self):
        current_domain.process(
            CreditCoins(user_id=USER, amount=100, description="Promo", expires_in_days=30),
            asynchronous=False,
        )
        repo = current_domain.repository_for(WalletAccount)
        first = repo.get(USER)
        second = repo.get(USER)

        first.debit(80, "Order A")
        repo.add(first)
        second.debit(80, "Order B")
        with pytest.raises(ExpectedVersionError):
            repo.add(second)

        assert repo.get(USER).balance == 20


class TestCheckoutUnderContention:
    def test_one_concurrent_write_is_absorbed(self, make_product, address):
        product_id = _prepare(make_product)

        with _interleaved_reserve(times=1):
            result = checkout(USER, address, redeem_coins=100, request_id="req-1")

        order = current_domain.repository_for(Order).get(result.order_id)
        assert order.coins_redeemed == 100
        # 5 listed, 1 restocked by the other writer, 2 sold
        assert current_domain.repository_for(Product).get(product_id).stock == 4
        assert current_domain.repository_for(WalletAccount).get(USER).balance == 0

    def test_persistent_contention_rolls_back_with_conflict(self, make_product, address):
        _prepare(make_product)

        with _interleaved_reserve(times=None):
            with pytest.raises(ConflictError) as exc_info:
                checkout(USER, address, redeem_coins=100, request_id="req-1")

        assert exc_info.value.retryable
        assert current_domain.repository_for(WalletAccount).get(USER).balance == 100
        assert current_domain.repository_for(Order)._dao.query.filter(user_id=USER).all().total == 0
        attempt = checkout_status(USER, "req-1")
        assert attempt.state == AttemptState.ROLLED_BACK.value
