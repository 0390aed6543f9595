"""Catalogue routes — public browsing, seller listings and admin approval."""

import json

from fastapi import APIRouter, Depends, HTTPException, Query
from protean.utils.globals import current_domain

from storefront.api.auth import Principal, admin_only, optional_user, seller_only
from storefront.api.schemas import (
    AddVariantRequest,
    CreateProductRequest,
    ProductIdResponse,
    ProductListResponse,
    ProductResponse,
    RejectProductRequest,
    RestockRequest,
    StatusResponse,
    UpdateProductRequest,
    VariantIdResponse,
    VariantSchema,
)
from storefront.catalogue.management import (
    AddVariant,
    ApproveProduct,
    CreateProduct,
    RejectProduct,
    RestockProduct,
    UpdateProduct,
)
from storefront.catalogue.product import ApprovalStatus, Product

router = APIRouter(prefix="/products", tags=["products"])


def _raw_images(images):
    if isinstance(images, list):
        return json.dumps(images)
    return images


def product_response(product: Product) -> ProductResponse:
    return ProductResponse(
        product_id=str(product.id),
        seller_id=str(product.seller_id),
        name=product.name,
        description=product.description,
        category=product.category,
        price=product.price,
        mrp=product.mrp,
        stock=product.stock,
        images=product.images.url_list if product.images else [],
        image_kind=product.images.kind if product.images else None,
        approval_status=product.approval_status,
        rejection_reason=product.rejection_reason,
        variants=[
            VariantSchema(
                variant_id=str(v.id),
                sku=v.sku,
                name=v.name,
                price=v.price,
                mrp=v.mrp,
                stock=v.stock,
            )
            for v in product.variants
        ],
    )


def _acting_seller(product_id: str, principal: Principal) -> str:
    """Admins act on behalf of the listing's seller."""
    if not principal.is_admin:
        return principal.user_id
    return str(current_domain.repository_for(Product).get(product_id).seller_id)


@router.get("", response_model=ProductListResponse)
async def list_products(
    principal: Principal | None = Depends(optional_user),
    category: str | None = None,
    seller_id: str | None = None,
    approval_status: str = ApprovalStatus.APPROVED.value,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> ProductListResponse:
    if approval_status != ApprovalStatus.APPROVED.value:
        # Unapproved listings are visible to admins, and to sellers for their own products
        if principal is None or principal.role == "buyer":
            raise HTTPException(status_code=403, detail="Only approved products are public")
        if principal.role == "seller":
            seller_id = principal.user_id

    query = current_domain.repository_for(Product)._dao.query.filter(approval_status=approval_status)
    if category:
        query = query.filter(category=category)
    if seller_id:
        query = query.filter(seller_id=seller_id)

    results = query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
    return ProductListResponse(products=[product_response(p) for p in results.items], total=results.total)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, principal: Principal | None = Depends(optional_user)) -> ProductResponse:
    product = current_domain.repository_for(Product).get(product_id)
    if not product.is_purchasable:
        visible = principal is not None and (principal.is_admin or principal.user_id == str(product.seller_id))
        if not visible:
            raise HTTPException(status_code=404, detail="Product not found")
    return product_response(product)


@router.post("", status_code=201, response_model=ProductIdResponse)
async def create_product(body: CreateProductRequest, principal: Principal = Depends(seller_only)) -> ProductIdResponse:
    command = CreateProduct(
        seller_id=principal.user_id,
        name=body.name,
        description=body.description,
        category=body.category,
        price=body.price,
        mrp=body.mrp,
        stock=body.stock,
        images=_raw_images(body.images),
    )
    product_id = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=product_id)


@router.put("/{product_id}", response_model=StatusResponse)
async def update_product(
    product_id: str, body: UpdateProductRequest, principal: Principal = Depends(seller_only)
) -> StatusResponse:
    changes = body.model_dump(exclude_unset=True, exclude={"images"})
    command = UpdateProduct(
        product_id=product_id,
        seller_id=_acting_seller(product_id, principal),
        changes=json.dumps(changes),
        images=_raw_images(body.images),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.post("/{product_id}/variants", status_code=201, response_model=VariantIdResponse)
async def add_variant(
    product_id: str, body: AddVariantRequest, principal: Principal = Depends(seller_only)
) -> VariantIdResponse:
    command = AddVariant(
        product_id=product_id,
        seller_id=_acting_seller(product_id, principal),
        sku=body.sku,
        name=body.name,
        price=body.price,
        mrp=body.mrp,
        stock=body.stock,
    )
    variant_id = current_domain.process(command, asynchronous=False)
    return VariantIdResponse(variant_id=variant_id)


@router.post("/{product_id}/restock", response_model=StatusResponse)
async def restock_product(
    product_id: str, body: RestockRequest, principal: Principal = Depends(seller_only)
) -> StatusResponse:
    command = RestockProduct(
        product_id=product_id,
        seller_id=_acting_seller(product_id, principal),
        quantity=body.quantity,
        variant_id=body.variant_id,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.post("/{product_id}/approve", response_model=StatusResponse)
async def approve_product(product_id: str, _: Principal = Depends(admin_only)) -> StatusResponse:
    current_domain.process(ApproveProduct(product_id=product_id), asynchronous=False)
    return StatusResponse()


@router.post("/{product_id}/reject", response_model=StatusResponse)
async def reject_product(
    product_id: str, body: RejectProductRequest, _: Principal = Depends(admin_only)
) -> StatusResponse:
    current_domain.process(RejectProduct(product_id=product_id, reason=body.reason), asynchronous=False)
    return StatusResponse()
