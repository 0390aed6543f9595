"""Checkout routes.

Clients should send an ``Idempotency-Key`` header (or ``request_id`` in the
body); retrying with the same key returns the order placed the first time.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Header

from storefront.api.auth import Principal, current_user
from storefront.api.schemas import CheckoutRequest, CheckoutResponse, CheckoutStatusResponse
from storefront.checkout.assembler import checkout, checkout_status

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("", status_code=201, response_model=CheckoutResponse)
def place_order(
    body: CheckoutRequest,
    principal: Principal = Depends(current_user),
    idempotency_key: str | None = Header(default=None),
) -> CheckoutResponse:
    result = checkout(
        principal.user_id,
        body.shipping_address.model_dump(exclude_none=True),
        redeem_coins=body.redeem_coins,
        request_id=body.request_id or idempotency_key,
        payment_method=body.payment_method,
    )
    return CheckoutResponse(**asdict(result))


@router.get("/{request_id}", response_model=CheckoutStatusResponse)
async def get_checkout_status(request_id: str, principal: Principal = Depends(current_user)) -> CheckoutStatusResponse:
    attempt = checkout_status(principal.user_id, request_id)
    return CheckoutStatusResponse(
        request_id=attempt.request_id,
        state=attempt.state,
        states_entered=attempt.states_entered,
        runs=attempt.runs or 1,
        order_id=str(attempt.order_id) if attempt.order_id else None,
        coins_redeemed=attempt.coins_redeemed or 0,
        failure_code=attempt.failure_code,
        failure_reason=attempt.failure_reason,
    )
