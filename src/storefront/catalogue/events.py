"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Product")
class ProductCreated:
    """A seller listed a new product; it awaits admin approval."""

    __version__ = 1

    product_id: Identifier(required=True)
    seller_id: Identifier(required=True)
    name: String(required=True)
    category: String()
    price: Float(required=True)
    stock: Integer(required=True)
    created_at: DateTime(required=True)


@storefront.event(part_of="Product")
class ProductUpdated:
    __version__ = 1

    product_id: Identifier(required=True)
    changes: Text(required=True)  # JSON object of changed fields


@storefront.event(part_of="Product")
class VariantAdded:
    __version__ = 1

    product_id: Identifier(required=True)
    variant_id: Identifier(required=True)
    sku: String(required=True)
    price: Float(required=True)
    stock: Integer(required=True)


@storefront.event(part_of="Product")
class ProductApproved:
    __version__ = 1

    product_id: Identifier(required=True)
    approved_at: DateTime(required=True)


@storefront.event(part_of="Product")
class ProductRejected:
    __version__ = 1

    product_id: Identifier(required=True)
    reason: String(required=True)
    rejected_at: DateTime(required=True)


@storefront.event(part_of="Product")
class StockReserved:
    """Units were taken out of stock for an order."""

    __version__ = 1

    product_id: Identifier(required=True)
    variant_id: Identifier()
    quantity: Integer(required=True)
    remaining: Integer(required=True)


@storefront.event(part_of="Product")
class StockReleased:
    """Units went back on the shelf after an order was cancelled."""

    __version__ = 1

    product_id: Identifier(required=True)
    variant_id: Identifier()
    quantity: Integer(required=True)
    remaining: Integer(required=True)


@storefront.event(part_of="Product")
class ProductRestocked:
    __version__ = 1

    product_id: Identifier(required=True)
    variant_id: Identifier()
    quantity: Integer(required=True)
    remaining: Integer(required=True)
