"""Wishlist routes."""

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from storefront.api.auth import Principal, current_user
from storefront.api.schemas import StatusResponse, WishlistCheckResponse, WishlistRequest, WishlistResponse
from storefront.wishlist.wishlist import AddToWishlist, RemoveFromWishlist, wishlist_for

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


@router.get("", response_model=WishlistResponse)
async def get_wishlist(principal: Principal = Depends(current_user)) -> WishlistResponse:
    return WishlistResponse(user_id=principal.user_id, product_ids=wishlist_for(principal.user_id).product_ids)


@router.post("", status_code=201, response_model=StatusResponse)
async def add_to_wishlist(body: WishlistRequest, principal: Principal = Depends(current_user)) -> StatusResponse:
    current_domain.process(AddToWishlist(user_id=principal.user_id, product_id=body.product_id), asynchronous=False)
    return StatusResponse()


@router.delete("/{product_id}", response_model=StatusResponse)
async def remove_from_wishlist(product_id: str, principal: Principal = Depends(current_user)) -> StatusResponse:
    current_domain.process(RemoveFromWishlist(user_id=principal.user_id, product_id=product_id), asynchronous=False)
    return StatusResponse()


@router.get("/check/{product_id}", response_model=WishlistCheckResponse)
async def check_wishlist(product_id: str, principal: Principal = Depends(current_user)) -> WishlistCheckResponse:
    return WishlistCheckResponse(product_id=product_id, in_wishlist=wishlist_for(principal.user_id).contains(product_id))
