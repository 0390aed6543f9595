"""Cart routes — the signed-in user's cart."""

import json

from fastapi import APIRouter, Depends
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.api.auth import Principal, current_user
from storefront.api.schemas import (
    AddToCartRequest,
    CartItemIdResponse,
    CartLineSchema,
    CartResponse,
    StatusResponse,
    UpdateCartItemRequest,
)
from storefront.cart.items import AddToCart, ClearCart, RemoveFromCart, UpdateCartItem
from storefront.catalogue.product import Product
from storefront.projections.cart_view import CartView

router = APIRouter(prefix="/cart", tags=["cart"])


def _cart_response(user_id) -> CartResponse:
    try:
        view = current_domain.repository_for(CartView).get(user_id)
    except ObjectNotFoundError:
        return CartResponse(user_id=user_id)

    products = current_domain.repository_for(Product)
    lines = []
    subtotal = 0.0
    for entry in json.loads(view.items or "[]"):
        line = CartLineSchema(**entry)
        try:
            product = products.get(entry["product_id"])
        except ObjectNotFoundError:
            lines.append(line)
            continue
        line.name = product.name
        line.unit_price = product.unit_price(entry["variant_id"])
        line.mrp = product.unit_mrp(entry["variant_id"])
        line.image = product.images.primary_url if product.images else None
        line.line_total = round(line.unit_price * line.quantity, 2)
        subtotal += line.line_total
        lines.append(line)

    return CartResponse(
        user_id=user_id,
        items=lines,
        item_count=view.item_count or 0,
        total_quantity=view.total_quantity or 0,
        subtotal=round(subtotal, 2),
    )


@router.get("", response_model=CartResponse)
async def get_cart(principal: Principal = Depends(current_user)) -> CartResponse:
    return _cart_response(principal.user_id)


@router.post("/items", status_code=201, response_model=CartItemIdResponse)
async def add_to_cart(body: AddToCartRequest, principal: Principal = Depends(current_user)) -> CartItemIdResponse:
    command = AddToCart(
        user_id=principal.user_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
    )
    item_id = current_domain.process(command, asynchronous=False)
    return CartItemIdResponse(item_id=item_id)


@router.put("/items/{item_id}", response_model=StatusResponse)
async def update_cart_item(
    item_id: str, body: UpdateCartItemRequest, principal: Principal = Depends(current_user)
) -> StatusResponse:
    command = UpdateCartItem(user_id=principal.user_id, item_id=item_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.delete("/items/{item_id}", response_model=StatusResponse)
async def remove_from_cart(item_id: str, principal: Principal = Depends(current_user)) -> StatusResponse:
    command = RemoveFromCart(user_id=principal.user_id, item_id=item_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.delete("", response_model=StatusResponse)
async def clear_cart(principal: Principal = Depends(current_user)) -> StatusResponse:
    current_domain.process(ClearCart(user_id=principal.user_id), asynchronous=False)
    return StatusResponse()
