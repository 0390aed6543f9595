"""First purchase reward — credits coins when a user's first order is placed."""

import structlog
from protean import handle
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.events import OrderPlaced
from storefront.wallet.ledger import wallet_for
from storefront.wallet.settings import load_wallet_settings
from storefront.wallet.wallet import WalletAccount

logger = structlog.get_logger(__name__)


@storefront.event_handler(part_of=WalletAccount, stream_category="storefront::order")
class FirstPurchaseRewardHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        settings = load_wallet_settings()
        if not settings.is_active or not settings.first_purchase_coins:
            return

        wallet = wallet_for(event.user_id)
        if wallet.first_purchase_rewarded:
            return

        wallet.credit(
            settings.first_purchase_coins,
            "First purchase reward",
            expires_in_days=settings.coin_expiry_days,
            reference=str(event.order_id),
        )
        wallet.first_purchase_rewarded = True
        current_domain.repository_for(WalletAccount).add(wallet)

        logger.info(
            "first_purchase_reward_credited",
            user_id=str(event.user_id),
            order_id=str(event.order_id),
            coins=settings.first_purchase_coins,
        )
