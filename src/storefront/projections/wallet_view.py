"""Wallet view — balance and next expiry per user, for the wallet badge and page header."""

from datetime import UTC, datetime

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.wallet.events import CoinsCredited, CoinsDebited, CoinsExpired, DebitReversed
from storefront.wallet.wallet import WalletAccount


@storefront.projection
class WalletView:
    user_id = Identifier(identifier=True, required=True)
    balance = Integer(default=0)
    lifetime_earned = Integer(default=0)
    lifetime_redeemed = Integer(default=0)
    lifetime_expired = Integer(default=0)
    next_expiry = DateTime()
    updated_at = DateTime()


@storefront.projector(projector_for=WalletView, aggregates=[WalletAccount])
class WalletViewProjector:
    def _load(self, user_id):
        repo = current_domain.repository_for(WalletView)
        try:
            view = repo.get(user_id)
        except ObjectNotFoundError:
            view = WalletView(user_id=user_id)
        return repo, view

    def _save(self, repo, view, balance):
        view.balance = balance
        wallet = current_domain.repository_for(WalletAccount).get(view.user_id)
        view.next_expiry = wallet.next_expiry()
        view.updated_at = datetime.now(UTC)
        repo.add(view)

    @on(CoinsCredited)
    def on_coins_credited(self, event):
        repo, view = self._load(event.user_id)
        view.lifetime_earned = (view.lifetime_earned or 0) + event.amount
        self._save(repo, view, event.balance)

    @on(CoinsDebited)
    def on_coins_debited(self, event):
        repo, view = self._load(event.user_id)
        view.lifetime_redeemed = (view.lifetime_redeemed or 0) + event.amount
        self._save(repo, view, event.balance)

    @on(DebitReversed)
    def on_debit_reversed(self, event):
        repo, view = self._load(event.user_id)
        returned = event.amount + (event.forfeited or 0)
        view.lifetime_redeemed = max((view.lifetime_redeemed or 0) - returned, 0)
        view.lifetime_expired = (view.lifetime_expired or 0) + (event.forfeited or 0)
        self._save(repo, view, event.balance)

    @on(CoinsExpired)
    def on_coins_expired(self, event):
        repo, view = self._load(event.user_id)
        view.lifetime_expired = (view.lifetime_expired or 0) + event.amount
        self._save(repo, view, event.balance)
