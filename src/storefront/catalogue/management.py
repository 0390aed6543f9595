"""Product management — seller listing, admin moderation and restocking."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront


@storefront.command(part_of="Product")
class CreateProduct:
    seller_id: Identifier(required=True)
    name: String(required=True, max_length=255)
    description: Text()
    category: String(max_length=100)
    price: Float(required=True, min_value=0.0)
    mrp: Float(min_value=0.0)
    stock: Integer(default=0, min_value=0)
    images: Text()  # Raw payload: URL, JSON array, or whatever the seller sent


@storefront.command(part_of="Product")
class UpdateProduct:
    product_id: Identifier(required=True)
    seller_id: Identifier(required=True)
    changes: Text(required=True)  # JSON object
    images: Text()


@storefront.command(part_of="Product")
class AddVariant:
    product_id: Identifier(required=True)
    seller_id: Identifier(required=True)
    sku: String(required=True, max_length=64)
    name: String(max_length=255)
    price: Float(required=True, min_value=0.0)
    mrp: Float(min_value=0.0)
    stock: Integer(default=0, min_value=0)


@storefront.command(part_of="Product")
class ApproveProduct:
    product_id: Identifier(required=True)


@storefront.command(part_of="Product")
class RejectProduct:
    product_id: Identifier(required=True)
    reason: String(required=True, max_length=500)


@storefront.command(part_of="Product")
class RestockProduct:
    product_id: Identifier(required=True)
    seller_id: Identifier(required=True)
    quantity: Integer(required=True, min_value=1)
    variant_id: Identifier()


def _owned_product(repo, product_id, seller_id):
    product = repo.get(product_id)
    if str(product.seller_id) != str(seller_id):
        raise ValidationError({"seller_id": ["Product belongs to another seller"]})
    return product


@storefront.command_handler(part_of=Product)
class ManageProductHandler:
    @handle(CreateProduct)
    def create_product(self, command):
        product = Product.create(
            seller_id=command.seller_id,
            name=command.name,
            price=command.price,
            mrp=command.mrp,
            stock=command.stock,
            category=command.category,
            description=command.description,
            images=command.images,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(UpdateProduct)
    def update_product(self, command):
        repo = current_domain.repository_for(Product)
        product = _owned_product(repo, command.product_id, command.seller_id)
        product.update_details(images=command.images, **json.loads(command.changes))
        repo.add(product)

    @handle(AddVariant)
    def add_variant(self, command):
        repo = current_domain.repository_for(Product)
        product = _owned_product(repo, command.product_id, command.seller_id)
        variant = product.add_variant(
            sku=command.sku,
            name=command.name,
            price=command.price,
            mrp=command.mrp,
            stock=command.stock,
        )
        repo.add(product)
        return str(variant.id)

    @handle(ApproveProduct)
    def approve_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.approve()
        repo.add(product)

    @handle(RejectProduct)
    def reject_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.reject(command.reason)
        repo.add(product)

    @handle(RestockProduct)
    def restock_product(self, command):
        repo = current_domain.repository_for(Product)
        product = _owned_product(repo, command.product_id, command.seller_id)
        product.restock(command.quantity, variant_id=command.variant_id)
        repo.add(product)
