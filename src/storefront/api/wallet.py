"""Wallet routes — balance, ledger, and the admin-only adjustments and settings."""

import json

from fastapi import APIRouter, Depends, Query
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.api.auth import Principal, admin_only, current_user
from storefront.api.schemas import (
    AdjustWalletRequest,
    ExpirySweepResponse,
    WalletResponse,
    WalletSettingsSchema,
    WalletTransactionSchema,
    WalletTransactionsPage,
)
from storefront.projections.wallet_view import WalletView
from storefront.wallet.ledger import AdjustWallet, sweep_expired_coins, wallet_for
from storefront.wallet.settings import UpdateWalletSettings, load_wallet_settings

router = APIRouter(prefix="/wallet", tags=["wallet"])


def _wallet_response(user_id) -> WalletResponse:
    try:
        view = current_domain.repository_for(WalletView).get(user_id)
    except ObjectNotFoundError:
        return WalletResponse(user_id=user_id)
    return WalletResponse(
        user_id=str(view.user_id),
        balance=view.balance or 0,
        next_expiry=view.next_expiry,
        lifetime_earned=view.lifetime_earned or 0,
        lifetime_redeemed=view.lifetime_redeemed or 0,
        lifetime_expired=view.lifetime_expired or 0,
    )


@router.get("", response_model=WalletResponse)
async def get_wallet(principal: Principal = Depends(current_user)) -> WalletResponse:
    return _wallet_response(principal.user_id)


@router.get("/transactions", response_model=WalletTransactionsPage)
async def list_transactions(
    principal: Principal = Depends(current_user),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> WalletTransactionsPage:
    transactions, total = wallet_for(principal.user_id).transactions_page(page=page, limit=limit)
    return WalletTransactionsPage(
        transactions=[
            WalletTransactionSchema(
                transaction_id=str(t.id),
                txn_type=t.txn_type,
                amount=t.amount,
                description=t.description,
                reference=t.reference,
                expires_at=t.expires_at,
                is_reversed=bool(t.is_reversed),
                created_at=t.created_at,
            )
            for t in transactions
        ],
        page=page,
        limit=limit,
        total=total,
    )


@router.get("/settings", response_model=WalletSettingsSchema)
async def get_wallet_settings(_: Principal = Depends(current_user)) -> WalletSettingsSchema:
    return WalletSettingsSchema(**load_wallet_settings().as_dict())


@router.put("/settings", response_model=WalletSettingsSchema)
async def update_wallet_settings(
    body: WalletSettingsSchema, _: Principal = Depends(admin_only)
) -> WalletSettingsSchema:
    changes = body.model_dump(exclude_unset=True)
    updated = current_domain.process(UpdateWalletSettings(changes=json.dumps(changes)), asynchronous=False)
    return WalletSettingsSchema(**updated)


@router.get("/admin/{user_id}", response_model=WalletResponse)
async def get_user_wallet(user_id: str, _: Principal = Depends(admin_only)) -> WalletResponse:
    return _wallet_response(user_id)


@router.post("/admin/{user_id}/adjust", response_model=WalletResponse)
async def adjust_wallet(user_id: str, body: AdjustWalletRequest, _: Principal = Depends(admin_only)) -> WalletResponse:
    command = AdjustWallet(user_id=user_id, amount=body.amount, description=body.description)
    current_domain.process(command, asynchronous=False)
    return _wallet_response(user_id)


@router.post("/admin/expire", response_model=ExpirySweepResponse)
def expire_coins(_: Principal = Depends(admin_only)) -> ExpirySweepResponse:
    return ExpirySweepResponse(**sweep_expired_coins())
