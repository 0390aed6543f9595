"""Shipping admin routes — Shiprocket settings, courier list and the fake carrier switchboard."""

import json
import os

from fastapi import APIRouter, Depends, HTTPException
from protean.utils.globals import current_domain

from storefront.api.auth import Principal, admin_only
from storefront.api.schemas import FakeCarrierConfigRequest, ShippingSettingsSchema, StatusResponse
from storefront.shipping.carrier import get_carrier
from storefront.shipping.carrier.fake_adapter import FakeCarrier
from storefront.shipping.dispatch import list_couriers
from storefront.shipping.settings import UpdateShippingSettings, load_shipping_settings

router = APIRouter(prefix="/shipping", tags=["shipping"])


@router.get("/settings", response_model=ShippingSettingsSchema)
async def get_shipping_settings(_: Principal = Depends(admin_only)) -> ShippingSettingsSchema:
    return ShippingSettingsSchema(**load_shipping_settings().as_dict())


@router.put("/settings", response_model=ShippingSettingsSchema)
async def update_shipping_settings(
    body: ShippingSettingsSchema, _: Principal = Depends(admin_only)
) -> ShippingSettingsSchema:
    changes = body.model_dump(exclude_unset=True)
    updated = current_domain.process(UpdateShippingSettings(changes=json.dumps(changes)), asynchronous=False)
    return ShippingSettingsSchema(**updated)


@router.get("/couriers")
def get_couriers(_: Principal = Depends(admin_only)) -> list[dict]:
    return list_couriers()


@router.post("/fake-carrier", response_model=StatusResponse)
async def configure_fake_carrier(body: FakeCarrierConfigRequest, _: Principal = Depends(admin_only)) -> StatusResponse:
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=404, detail="Not found")
    carrier = get_carrier()
    if not isinstance(carrier, FakeCarrier):
        raise HTTPException(status_code=409, detail="The live carrier adapter is active")
    carrier.configure(**body.model_dump())
    return StatusResponse()
