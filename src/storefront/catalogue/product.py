"""Product aggregate root with Variant entity.

Stock lives on the product (or on the variant when the product has
variants). It only moves through ``reserve_stock``, ``release_stock`` and
``restock``; a reservation that would take a counter below zero is refused
whole, leaving the product untouched.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from storefront.catalogue.events import (
    ProductApproved,
    ProductCreated,
    ProductRejected,
    ProductRestocked,
    ProductUpdated,
    StockReleased,
    StockReserved,
    VariantAdded,
)
from storefront.catalogue.images import ProductImages, resolve_images
from storefront.domain import storefront
from storefront.errors import InsufficientStock

_EDITABLE_FIELDS = ("name", "description", "category", "price", "mrp")


class ApprovalStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@storefront.entity(part_of="Product")
class Variant:
    sku: String(required=True, max_length=64)
    name: String(max_length=255)
    price: Float(required=True, min_value=0.0)
    mrp: Float(min_value=0.0)
    stock: Integer(default=0, min_value=0)


@storefront.aggregate
class Product:
    """Product aggregate root."""

    seller_id: Identifier(required=True)
    name: String(required=True, max_length=255)
    description: Text()
    category: String(max_length=100)
    price: Float(required=True, min_value=0.0)
    mrp: Float(min_value=0.0)
    stock: Integer(default=0, min_value=0)
    images: ValueObject(ProductImages)
    variants: HasMany(Variant)
    approval_status: String(choices=ApprovalStatus, default=ApprovalStatus.PENDING.value)
    rejection_reason: String(max_length=500)
    created_at: DateTime()
    updated_at: DateTime()

    @invariant.post
    def mrp_cannot_be_below_selling_price(self):
        if self.mrp is not None and self.price is not None and self.mrp < self.price:
            raise ValidationError({"mrp": ["MRP cannot be lower than the selling price"]})

    @classmethod
    def create(
        cls,
        seller_id,
        name,
        price,
        mrp=None,
        stock=0,
        category=None,
        description=None,
        images=None,
    ):
        now = datetime.now(UTC)
        product = cls(
            seller_id=seller_id,
            name=name,
            price=price,
            mrp=mrp if mrp is not None else price,
            stock=stock,
            category=category,
            description=description,
            images=resolve_images(images),
            approval_status=ApprovalStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductCreated(
                product_id=str(product.id),
                seller_id=str(seller_id),
                name=name,
                category=category,
                price=price,
                stock=stock,
                created_at=now,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Seller edits
    # -------------------------------------------------------------------
    def update_details(self, images=None, **changes):
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError({"fields": [f"Cannot edit: {', '.join(sorted(unknown))}"]})

        with atomic_change(self):
            for field, value in changes.items():
                setattr(self, field, value)
            if images is not None:
                self.images = resolve_images(images)
                changes["images"] = self.images.kind if self.images else None
            self.updated_at = datetime.now(UTC)

        self.raise_(ProductUpdated(product_id=str(self.id), changes=json.dumps(changes, default=str)))

    def add_variant(self, sku, price, name=None, mrp=None, stock=0):
        if any(v.sku == sku for v in self.variants):
            raise ValidationError({"sku": [f"Variant with SKU {sku} already exists"]})

        variant = Variant(sku=sku, name=name, price=price, mrp=mrp if mrp is not None else price, stock=stock)
        self.add_variants(variant)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            VariantAdded(
                product_id=str(self.id),
                variant_id=str(variant.id),
                sku=sku,
                price=price,
                stock=stock,
            )
        )
        return variant

    # -------------------------------------------------------------------
    # Admin moderation
    # -------------------------------------------------------------------
    def approve(self):
        if self.approval_status == ApprovalStatus.APPROVED.value:
            raise ValidationError({"approval_status": ["Product is already approved"]})

        now = datetime.now(UTC)
        self.approval_status = ApprovalStatus.APPROVED.value
        self.rejection_reason = None
        self.updated_at = now
        self.raise_(ProductApproved(product_id=str(self.id), approved_at=now))

    def reject(self, reason):
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A rejection reason is required"]})

        now = datetime.now(UTC)
        self.approval_status = ApprovalStatus.REJECTED.value
        self.rejection_reason = reason
        self.updated_at = now
        self.raise_(ProductRejected(product_id=str(self.id), reason=reason, rejected_at=now))

    @property
    def is_purchasable(self) -> bool:
        return self.approval_status == ApprovalStatus.APPROVED.value

    # -------------------------------------------------------------------
    # Pricing lookups
    # -------------------------------------------------------------------
    def variant(self, variant_id):
        """Return the variant with ``variant_id``; raises for unknown ids."""
        found = next((v for v in self.variants if str(v.id) == str(variant_id)), None)
        if found is None:
            raise ValidationError({"variant_id": [f"Variant {variant_id} not found on product {self.id}"]})
        return found

    def unit_price(self, variant_id=None) -> float:
        return self.variant(variant_id).price if variant_id else self.price

    def unit_mrp(self, variant_id=None) -> float:
        if variant_id:
            v = self.variant(variant_id)
            return v.mrp if v.mrp is not None else v.price
        return self.mrp if self.mrp is not None else self.price

    def sku_for(self, variant_id=None) -> str:
        return self.variant(variant_id).sku if variant_id else str(self.id)

    def available_stock(self, variant_id=None) -> int:
        return self.variant(variant_id).stock if variant_id else self.stock

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def shortfall(self, quantity, variant_id=None) -> dict | None:
        """Describe the shortage if ``quantity`` units cannot be reserved, else None."""
        available = self.available_stock(variant_id)
        if available >= quantity:
            return None
        return {
            "product_id": str(self.id),
            "variant_id": str(variant_id) if variant_id else None,
            "name": self.name,
            "requested": quantity,
            "available": available,
        }

    def reserve_stock(self, quantity, variant_id=None):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        missing = self.shortfall(quantity, variant_id)
        if missing:
            raise InsufficientStock([missing])

        if variant_id:
            target = self.variant(variant_id)
            target.stock -= quantity
        else:
            target = self
            self.stock -= quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                remaining=target.stock,
            )
        )

    def release_stock(self, quantity, variant_id=None):
        target = self.variant(variant_id) if variant_id else self
        target.stock += quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockReleased(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                remaining=target.stock,
            )
        )

    def restock(self, quantity, variant_id=None):
        if quantity < 1:
            raise ValidationError({"quantity": ["Restock quantity must be positive"]})

        target = self.variant(variant_id) if variant_id else self
        target.stock += quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ProductRestocked(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                remaining=target.stock,
            )
        )
