import json

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from storefront.catalogue.management import (
    AddVariant,
    ApproveProduct,
    CreateProduct,
    RejectProduct,
    RestockProduct,
    UpdateProduct,
)
from storefront.catalogue.product import ApprovalStatus, Product

SELLER = "seller-001"


def _create(**overrides):
    data = {"seller_id": SELLER, "name": "Block Print Dupatta", "price": 799.0, "mrp": 999.0, "stock": 4}
    data.update(overrides)
    return current_domain.process(CreateProduct(**data), asynchronous=False)


def _product(product_id):
    return current_domain.repository_for(Product).get(product_id)


class TestCreateAndModerate:
    def test_new_listing_awaits_approval(self):
        product = _product(_create(images="https://cdn.lelekart.in/p/1.jpg"))
        assert product.approval_status == ApprovalStatus.PENDING.value
        assert product.images.url_list == ["https://cdn.lelekart.in/p/1.jpg"]
        assert not product.is_purchasable

    def test_approve(self):
        product_id = _create()
        current_domain.process(ApproveProduct(product_id=product_id), asynchronous=False)
        assert _product(product_id).is_purchasable

    def test_reject_keeps_reason(self):
        product_id = _create()
        current_domain.process(RejectProduct(product_id=product_id, reason="Blurry photos"), asynchronous=False)
        product = _product(product_id)
        assert product.approval_status == ApprovalStatus.REJECTED.value
        assert product.rejection_reason == "Blurry photos"

    def test_unknown_product(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(ApproveProduct(product_id="missing"), asynchronous=False)


class TestSellerEdits:
    def test_update_details(self):
        product_id = _create()
        current_domain.process(
            UpdateProduct(
                product_id=product_id,
                seller_id=SELLER,
                changes=json.dumps({"price": 749.0}),
                images=json.dumps(["https://cdn.lelekart.in/a.jpg", "https://cdn.lelekart.in/b.jpg"]),
            ),
            asynchronous=False,
        )
        product = _product(product_id)
        assert product.price == 749.0
        assert len(product.images.url_list) == 2

    def test_other_seller_cannot_edit(self):
        product_id = _create()
        with pytest.raises(ValidationError) as exc_info:
            current_domain.process(
                UpdateProduct(product_id=product_id, seller_id="seller-999", changes=json.dumps({"price": 1.0})),
                asynchronous=False,
            )
        assert "seller_id" in exc_info.value.messages

    def test_stock_is_not_editable(self):
        product_id = _create()
        with pytest.raises(ValidationError):
            current_domain.process(
                UpdateProduct(product_id=product_id, seller_id=SELLER, changes=json.dumps({"stock": 100})),
                asynchronous=False,
            )

    def test_variant_and_restock(self):
        product_id = _create()
        variant_id = current_domain.process(
            AddVariant(product_id=product_id, seller_id=SELLER, sku="DUP-RED", price=799.0, stock=1),
            asynchronous=False,
        )
        current_domain.process(
            RestockProduct(product_id=product_id, seller_id=SELLER, quantity=5, variant_id=variant_id),
            asynchronous=False,
        )
        assert _product(product_id).available_stock(variant_id) == 6
        assert _product(product_id).available_stock() == 4
