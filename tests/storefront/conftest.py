import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from storefront.catalogue.management import ApproveProduct, CreateProduct
from storefront.shipping.carrier import set_carrier
from storefront.shipping.carrier.fake_adapter import FakeCarrier


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture()
def make_product():
    """Create an approved product and return its id."""

    def _make(name="Cotton Kurta", price=499.0, stock=10, category="Apparel", seller_id="seller-001", **extra):
        product_id = current_domain.process(
            CreateProduct(seller_id=seller_id, name=name, price=price, stock=stock, category=category, **extra),
            asynchronous=False,
        )
        current_domain.process(ApproveProduct(product_id=product_id), asynchronous=False)
        return product_id

    return _make


@pytest.fixture()
def address():
    return {
        "name": "Asha Verma",
        "phone": "9876543210",
        "email": "asha@example.com",
        "address": "12 MG Road, Indiranagar",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560001",
    }


@pytest.fixture()
def fake_carrier():
    carrier = FakeCarrier()
    set_carrier(carrier)
    return carrier


@pytest.fixture()
def place_order(make_product, address):
    """Put one product in the user's cart and check out; returns the CheckoutResult."""
    from storefront.cart.items import AddToCart
    from storefront.checkout.assembler import checkout

    def _place(user_id="buyer-001", quantity=1, price=499.0, stock=10, **checkout_kwargs):
        product_id = make_product(price=price, stock=stock)
        current_domain.process(
            AddToCart(user_id=user_id, product_id=product_id, quantity=quantity),
            asynchronous=False,
        )
        return checkout(user_id, address, **checkout_kwargs)

    return _place
