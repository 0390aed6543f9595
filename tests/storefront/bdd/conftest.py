"""Shared BDD fixtures and step definitions for the storefront."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError
from pytest_bdd import given, parsers, then, when

from storefront.cart.cart import ShoppingCart
from storefront.cart.items import AddToCart
from storefront.catalogue.product import Product
from storefront.checkout.assembler import checkout
from storefront.errors import StorefrontError
from storefront.order.order import Order
from storefront.wallet.ledger import CreditCoins, sweep_expired_coins
from storefront.wallet.settings import UpdateWalletSettings
from storefront.wallet.wallet import WalletAccount


@pytest.fixture()
def context():
    return {"products": {}, "orders": [], "error": None}


def _balance(user):
    try:
        return current_domain.repository_for(WalletAccount).get(user).balance
    except ObjectNotFoundError:
        return 0


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:g} with {stock:d} in stock'))
def _(context, make_product, name, price, stock):
    context["products"][name] = make_product(name=name, price=price, stock=stock)


@given(parsers.cfparse('"{user}" has {coins:d} coins'))
def _(user, coins):
    current_domain.process(
        CreditCoins(user_id=user, amount=coins, description="Welcome coins", expires_in_days=90),
        asynchronous=False,
    )


@given(parsers.cfparse('"{user}" received {coins:d} coins expiring in {days:d} days'))
def _(user, coins, days):
    current_domain.process(
        CreditCoins(user_id=user, amount=coins, description="Promo", expires_in_days=days),
        asynchronous=False,
    )


@given(parsers.cfparse("coins may pay for at most {percent:g}% of an order"))
def _(percent):
    current_domain.process(
        UpdateWalletSettings(changes=json.dumps({"max_usage_percentage": percent})),
        asynchronous=False,
    )


@given(parsers.cfparse('"{user}" has {quantity:d} of "{name}" in the cart'))
def _(context, user, quantity, name):
    current_domain.process(
        AddToCart(user_id=user, product_id=context["products"][name], quantity=quantity),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Checkout steps, usable as Given or When
# ---------------------------------------------------------------------------
def _checkout(context, address, user, **kwargs):
    try:
        result = checkout(user, address, **kwargs)
    except StorefrontError as exc:
        context["error"] = exc
        return
    context["orders"].append(result.order_id)


@given(parsers.cfparse('"{user}" checks out'))
@when(parsers.cfparse('"{user}" checks out'))
def _(context, address, user):
    _checkout(context, address, user)


@when(parsers.cfparse('"{user}" checks out redeeming {coins:d} coins'))
def _(context, address, user, coins):
    _checkout(context, address, user, redeem_coins=coins)


@when(parsers.cfparse('"{user}" checks out with request "{request_id}"'))
def _(context, address, user, request_id):
    _checkout(context, address, user, request_id=request_id)


# ---------------------------------------------------------------------------
# Wallet steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('"{user}" spends {coins:d} coins'))
def _(user, coins):
    repo = current_domain.repository_for(WalletAccount)
    wallet = repo.get(user)
    wallet.debit(coins, "Spent at checkout")
    repo.add(wallet)


@when(parsers.cfparse("{days:d} days pass"))
def _(context, days):
    context["sweep"] = sweep_expired_coins(as_of=datetime.now(UTC) + timedelta(days=days))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the order total is {total:g}"))
def _(context, total):
    order = current_domain.repository_for(Order).get(context["orders"][-1])
    assert order.total == total


@then(parsers.cfparse('"{user}" has {coins:d} coins'))
def _(user, coins):
    assert _balance(user) == coins


@then(parsers.cfparse('"{name}" has {stock:d} in stock'))
def _(context, name, stock):
    assert current_domain.repository_for(Product).get(context["products"][name]).stock == stock


@then(parsers.cfparse('checkout fails with "{code}"'))
def _(context, code):
    assert context["error"] is not None
    assert context["error"].code == code


@then(parsers.cfparse('the cart of "{user}" is empty'))
def _(user):
    assert not current_domain.repository_for(ShoppingCart).get(user).items


@then(parsers.cfparse('the cart of "{user}" holds {quantity:d} units'))
def _(user, quantity):
    cart = current_domain.repository_for(ShoppingCart).get(user)
    assert sum(item.quantity for item in cart.items) == quantity


@then(parsers.cfparse('"{user}" has {count:d} order'))
@then(parsers.cfparse('"{user}" has {count:d} orders'))
def _(user, count):
    assert current_domain.repository_for(Order)._dao.query.filter(user_id=user).all().total == count


@then(parsers.cfparse('no coins of "{user}" expired'))
def _(context, user):
    assert context["sweep"]["coins_expired"] == 0


@then(parsers.cfparse('{coins:d} coins of "{user}" expired'))
def _(context, coins, user):
    assert context["sweep"]["coins_expired"] == coins
