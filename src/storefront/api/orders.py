"""Order routes — history, status changes, cancellation and carrier dispatch."""

from fastapi import APIRouter, Depends, HTTPException, Query
from protean.utils.globals import current_domain

from storefront.api.auth import Principal, admin_only, current_user
from storefront.api.schemas import (
    CancelOrderRequest,
    DispatchResponse,
    OrderLineSchema,
    OrderListResponse,
    OrderResponse,
    StatusResponse,
    TrackingResponse,
    UpdateOrderStatusRequest,
)
from storefront.order.order import Order
from storefront.order.status import CancelOrder, UpdateOrderStatus
from storefront.shipping.dispatch import cancel_carrier_shipment, push_order_to_carrier, sync_tracking

router = APIRouter(prefix="/orders", tags=["orders"])


def order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        user_id=str(order.user_id),
        status=order.status,
        payment_method=order.payment_method,
        subtotal=order.subtotal,
        coins_redeemed=order.coins_redeemed or 0,
        coin_discount=order.coin_discount or 0.0,
        total=order.total,
        lines=[
            OrderLineSchema(
                product_id=str(line.product_id),
                variant_id=str(line.variant_id) if line.variant_id else None,
                name=line.name,
                sku=line.sku,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in order.lines
        ],
        shipping_address=order.shipping_address.as_dict() if order.shipping_address else None,
        dispatch_status=order.dispatch_status,
        shiprocket_order_id=order.shiprocket_order_id,
        shiprocket_shipment_id=order.shiprocket_shipment_id,
        awb_code=order.awb_code,
        courier_name=order.courier_name,
        tracking_status=order.tracking_status,
        dispatch_error=order.dispatch_error,
        placed_at=order.placed_at,
    )


def _visible_order(order_id: str, principal: Principal) -> Order:
    order = current_domain.repository_for(Order).get(order_id)
    if not principal.owns(order.user_id):
        raise HTTPException(status_code=403, detail="Order belongs to another user")
    return order


@router.get("", response_model=OrderListResponse)
async def list_orders(
    principal: Principal = Depends(current_user),
    status: str | None = None,
    user_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> OrderListResponse:
    query = current_domain.repository_for(Order)._dao.query
    owner = user_id if principal.is_admin else principal.user_id
    if owner:
        query = query.filter(user_id=owner)
    if status:
        query = query.filter(status=status)

    results = query.order_by("-placed_at").offset((page - 1) * limit).limit(limit).all()
    return OrderListResponse(orders=[order_response(o) for o in results.items], total=results.total)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, principal: Principal = Depends(current_user)) -> OrderResponse:
    return order_response(_visible_order(order_id, principal))


@router.put("/{order_id}/status", response_model=StatusResponse)
async def update_order_status(
    order_id: str, body: UpdateOrderStatusRequest, _: Principal = Depends(admin_only)
) -> StatusResponse:
    current_domain.process(UpdateOrderStatus(order_id=order_id, status=body.status), asynchronous=False)
    return StatusResponse()


@router.post("/{order_id}/cancel", response_model=StatusResponse)
def cancel_order(
    order_id: str, body: CancelOrderRequest, principal: Principal = Depends(current_user)
) -> StatusResponse:
    order = _visible_order(order_id, principal)
    if order.is_dispatched:
        cancel_carrier_shipment(order)
    command = CancelOrder(order_id=order_id, reason=body.reason, cancelled_by=principal.role)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.post("/{order_id}/push", response_model=DispatchResponse)
def push_to_carrier(order_id: str, _: Principal = Depends(admin_only)) -> DispatchResponse:
    return DispatchResponse(**push_order_to_carrier(order_id))


@router.post("/{order_id}/tracking", response_model=TrackingResponse)
def refresh_tracking(order_id: str, principal: Principal = Depends(current_user)) -> TrackingResponse:
    _visible_order(order_id, principal)
    return TrackingResponse(**sync_tracking(order_id))
