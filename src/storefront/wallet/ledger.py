"""Wallet ledger commands — credit, debit, reversal, admin adjustment and expiry."""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.wallet.settings import load_wallet_settings
from storefront.wallet.wallet import WalletAccount

logger = structlog.get_logger(__name__)

SWEEP_PAGE_SIZE = 100


@storefront.command(part_of="WalletAccount")
class CreditCoins:
    user_id = Identifier(required=True)
    amount = Integer(required=True, min_value=1)
    description = String(required=True, max_length=255)
    expires_in_days = Integer(min_value=1)
    reference = String(max_length=255)


@storefront.command(part_of="WalletAccount")
class DebitCoins:
    user_id = Identifier(required=True)
    amount = Integer(required=True, min_value=1)
    description = String(required=True, max_length=255)
    reference = String(max_length=255)


@storefront.command(part_of="WalletAccount")
class ReverseDebit:
    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    description = String(required=True, max_length=255)


@storefront.command(part_of="WalletAccount")
class AdjustWallet:
    user_id = Identifier(required=True)
    amount = Integer(required=True)
    description = String(required=True, max_length=255)


@storefront.command(part_of="WalletAccount")
class ExpireWalletCoins:
    user_id = Identifier(required=True)
    as_of = DateTime()


def wallet_for(user_id) -> WalletAccount:
    """Load the user's wallet, or open an unsaved empty one."""
    try:
        return current_domain.repository_for(WalletAccount).get(user_id)
    except ObjectNotFoundError:
        return WalletAccount.open(user_id)


@storefront.command_handler(part_of=WalletAccount)
class WalletLedgerHandler:
    @handle(CreditCoins)
    def credit_coins(self, command):
        wallet = wallet_for(command.user_id)
        txn = wallet.credit(
            command.amount,
            command.description,
            expires_in_days=command.expires_in_days,
            reference=command.reference,
        )
        current_domain.repository_for(WalletAccount).add(wallet)
        return str(txn.id)

    @handle(DebitCoins)
    def debit_coins(self, command):
        wallet = wallet_for(command.user_id)
        txn = wallet.debit(command.amount, command.description, reference=command.reference)
        current_domain.repository_for(WalletAccount).add(wallet)
        return str(txn.id)

    @handle(ReverseDebit)
    def reverse_debit(self, command):
        repo = current_domain.repository_for(WalletAccount)
        wallet = repo.get(command.user_id)
        if wallet.is_debit_reversed(command.transaction_id):
            logger.info("debit_already_reversed", user_id=command.user_id, transaction_id=command.transaction_id)
            return None

        txn = wallet.reverse_debit(command.transaction_id, command.description)
        repo.add(wallet)
        return str(txn.id) if txn else None

    @handle(AdjustWallet)
    def adjust_wallet(self, command):
        settings = load_wallet_settings()
        wallet = wallet_for(command.user_id)
        txn = wallet.adjust(command.amount, command.description, expires_in_days=settings.coin_expiry_days)
        current_domain.repository_for(WalletAccount).add(wallet)

        logger.info(
            "wallet_adjusted",
            user_id=command.user_id,
            amount=command.amount,
            balance=wallet.balance,
        )
        return str(txn.id)

    @handle(ExpireWalletCoins)
    def expire_wallet_coins(self, command):
        repo = current_domain.repository_for(WalletAccount)
        wallet = repo.get(command.user_id)
        expired = wallet.expire_lots(command.as_of or datetime.now(UTC))
        repo.add(wallet)
        return expired


def sweep_expired_coins(as_of=None) -> dict:
    """Expire due lots across every wallet, one wallet per unit of work.

    A wallet written concurrently (a checkout debit, say) is skipped and left
    for the next sweep; the rest of the run carries on.
    """
    as_of = as_of or datetime.now(UTC)
    repo = current_domain.repository_for(WalletAccount)

    user_ids = []
    offset = 0
    while True:
        page = repo._dao.query.offset(offset).limit(SWEEP_PAGE_SIZE).all()
        user_ids.extend(str(w.user_id) for w in page.items)
        if len(page.items) < SWEEP_PAGE_SIZE:
            break
        offset += SWEEP_PAGE_SIZE

    total = 0
    touched = 0
    skipped = 0
    for user_id in user_ids:
        try:
            expired = current_domain.process(ExpireWalletCoins(user_id=user_id, as_of=as_of), asynchronous=False)
        except ExpectedVersionError:
            skipped += 1
            logger.warning("coin_expiry_conflict", user_id=user_id)
            continue
        if expired:
            total += expired
            touched += 1

    logger.info(
        "coin_expiry_sweep_completed",
        wallets_scanned=len(user_ids),
        wallets_touched=touched,
        wallets_skipped=skipped,
        coins=total,
    )
    return {
        "wallets_scanned": len(user_ids),
        "wallets_touched": touched,
        "wallets_skipped": skipped,
        "coins_expired": total,
    }
