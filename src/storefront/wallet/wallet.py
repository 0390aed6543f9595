"""WalletAccount aggregate — a coin ledger built from expiring credit lots.

Every credit opens a lot with its own ``remaining`` counter. Debits draw the
counters down, earliest expiry first; lots are never deleted. The expiry
sweep moves whatever is left in a due lot into an ``expired`` transaction,
so a debit and a sweep touching the same lot can never both subtract the
same coins.

Invariant: ``balance == sum(remaining)`` over active lots, after every change.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String, Text

from storefront.domain import storefront
from storefront.errors import InsufficientFunds
from storefront.wallet.events import CoinsCredited, CoinsDebited, CoinsExpired, DebitReversed

_NEVER = datetime.max.replace(tzinfo=UTC)


class LotStatus(Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class TransactionType(Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    EXPIRED = "expired"


def _aware(value):
    """Treat naive datetimes coming back from storage as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@storefront.entity(part_of="WalletAccount")
class CoinLot:
    amount = Integer(required=True, min_value=1)
    remaining = Integer(required=True, min_value=0)
    status = String(choices=LotStatus, default=LotStatus.ACTIVE.value)
    expires_at = DateTime()
    source = String(max_length=255)
    created_at = DateTime()

    def spendable(self, as_of) -> bool:
        if self.status != LotStatus.ACTIVE.value or self.remaining <= 0:
            return False
        expires_at = _aware(self.expires_at)
        return expires_at is None or expires_at > as_of


@storefront.entity(part_of="WalletAccount")
class WalletTransaction:
    txn_type = String(choices=TransactionType, required=True)
    amount = Integer(required=True, min_value=1)
    description = String(max_length=255)
    reference = String(max_length=255)
    expires_at = DateTime()
    allocations = Text()  # JSON: [{"lot_id": ..., "amount": ...}] for debits
    is_reversed = Boolean(default=False)
    created_at = DateTime()


@storefront.aggregate
class WalletAccount:
    user_id = Identifier(identifier=True)
    balance = Integer(default=0, min_value=0)
    lots = HasMany(CoinLot)
    transactions = HasMany(WalletTransaction)
    first_purchase_rewarded = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def balance_equals_active_lot_remainders(self):
        held = sum(lot.remaining for lot in self.lots if lot.status == LotStatus.ACTIVE.value)
        if self.balance != held:
            raise ValidationError({"balance": [f"Balance {self.balance} does not match active lots ({held})"]})

    @classmethod
    def open(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, balance=0, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def available_balance(self, as_of=None) -> int:
        """Coins that can be spent right now; lots past due but not yet swept are excluded."""
        as_of = as_of or datetime.now(UTC)
        return sum(lot.remaining for lot in self.lots if lot.spendable(as_of))

    def next_expiry(self, as_of=None):
        as_of = as_of or datetime.now(UTC)
        dates = [_aware(lot.expires_at) for lot in self.lots if lot.spendable(as_of) and lot.expires_at]
        return min(dates) if dates else None

    def transaction(self, transaction_id):
        return next((t for t in self.transactions if str(t.id) == str(transaction_id)), None)

    def transactions_page(self, page=1, limit=10):
        ordered = sorted(self.transactions, key=lambda t: _aware(t.created_at), reverse=True)
        start = (page - 1) * limit
        return ordered[start : start + limit], len(ordered)

    # -------------------------------------------------------------------
    # Credits
    # -------------------------------------------------------------------
    def credit(self, amount, description, expires_in_days=None, reference=None, now=None):
        if amount is None or amount < 1:
            raise ValidationError({"amount": ["Credit amount must be a positive number of coins"]})

        now = now or datetime.now(UTC)
        expires_at = now + timedelta(days=expires_in_days) if expires_in_days else None

        with atomic_change(self):
            lot = CoinLot(
                amount=amount,
                remaining=amount,
                status=LotStatus.ACTIVE.value,
                expires_at=expires_at,
                source=description,
                created_at=now,
            )
            self.add_lots(lot)
            txn = WalletTransaction(
                txn_type=TransactionType.CREDIT.value,
                amount=amount,
                description=description,
                reference=reference,
                expires_at=expires_at,
                created_at=now,
            )
            self.add_transactions(txn)
            self.balance += amount
            self.updated_at = now

        self.raise_(
            CoinsCredited(
                user_id=str(self.user_id),
                transaction_id=str(txn.id),
                lot_id=str(lot.id),
                amount=amount,
                balance=self.balance,
                description=description,
                expires_at=expires_at,
            )
        )
        return txn

    # -------------------------------------------------------------------
    # Debits
    # -------------------------------------------------------------------
    def debit(self, amount, description, reference=None, now=None):
        """Spend ``amount`` coins from the lots that expire first."""
        if amount is None or amount < 1:
            raise ValidationError({"amount": ["Debit amount must be a positive number of coins"]})

        now = now or datetime.now(UTC)
        available = self.available_balance(now)
        if available < amount:
            raise InsufficientFunds(requested=amount, available=available)

        spendable = sorted(
            (lot for lot in self.lots if lot.spendable(now)),
            key=lambda lot: (_aware(lot.expires_at) or _NEVER, _aware(lot.created_at)),
        )

        allocations = []
        outstanding = amount
        with atomic_change(self):
            for lot in spendable:
                if outstanding == 0:
                    break
                take = min(lot.remaining, outstanding)
                lot.remaining -= take
                outstanding -= take
                allocations.append({"lot_id": str(lot.id), "amount": take})

            txn = WalletTransaction(
                txn_type=TransactionType.DEBIT.value,
                amount=amount,
                description=description,
                reference=reference,
                allocations=json.dumps(allocations),
                created_at=now,
            )
            self.add_transactions(txn)
            self.balance -= amount
            self.updated_at = now

        self.raise_(
            CoinsDebited(
                user_id=str(self.user_id),
                transaction_id=str(txn.id),
                amount=amount,
                balance=self.balance,
                reference=reference,
            )
        )
        return txn

    def reverse_debit(self, transaction_id, description, now=None):
        """Put a debit's coins back into the lots it drew from.

        Coins whose lot has since been swept as expired are forfeited, in
        which case no credit transaction is written and None is returned.
        """
        original = self.transaction(transaction_id)
        if original is None or original.txn_type != TransactionType.DEBIT.value:
            raise ValidationError({"transaction_id": [f"Debit {transaction_id} not found in wallet"]})
        if original.is_reversed:
            raise ValidationError({"transaction_id": [f"Debit {transaction_id} was already reversed"]})

        now = now or datetime.now(UTC)
        restored = 0
        forfeited = 0
        with atomic_change(self):
            for allocation in json.loads(original.allocations or "[]"):
                lot = next((lt for lt in self.lots if str(lt.id) == allocation["lot_id"]), None)
                if lot is None or lot.status != LotStatus.ACTIVE.value:
                    forfeited += allocation["amount"]
                    continue
                lot.remaining += allocation["amount"]
                restored += allocation["amount"]

            original.is_reversed = True
            txn = None
            if restored:
                txn = WalletTransaction(
                    txn_type=TransactionType.CREDIT.value,
                    amount=restored,
                    description=description,
                    reference=str(transaction_id),
                    created_at=now,
                )
                self.add_transactions(txn)
            self.balance += restored
            self.updated_at = now

        self.raise_(
            DebitReversed(
                user_id=str(self.user_id),
                transaction_id=str(txn.id) if txn else str(transaction_id),
                reversed_transaction_id=str(transaction_id),
                amount=restored,
                forfeited=forfeited,
                balance=self.balance,
            )
        )
        return txn

    # -------------------------------------------------------------------
    # Expiry
    # -------------------------------------------------------------------
    def expire_lots(self, as_of=None) -> int:
        """Close every active lot due at ``as_of``; returns the coins written off."""
        as_of = as_of or datetime.now(UTC)
        due = [
            lot
            for lot in self.lots
            if lot.status == LotStatus.ACTIVE.value and lot.expires_at and _aware(lot.expires_at) <= as_of
        ]
        if not due:
            return 0

        total = 0
        with atomic_change(self):
            for lot in due:
                left = lot.remaining
                if left > 0:
                    self.add_transactions(
                        WalletTransaction(
                            txn_type=TransactionType.EXPIRED.value,
                            amount=left,
                            description=f"Coins expired from: {lot.source}" if lot.source else "Coins expired",
                            reference=str(lot.id),
                            expires_at=lot.expires_at,
                            created_at=as_of,
                        )
                    )
                    total += left
                lot.remaining = 0
                lot.status = LotStatus.EXPIRED.value
            self.balance -= total
            self.updated_at = as_of

        self.raise_(
            CoinsExpired(
                user_id=str(self.user_id),
                amount=total,
                lots_expired=len(due),
                balance=self.balance,
                expired_at=as_of,
            )
        )
        return total

    # -------------------------------------------------------------------
    # Admin adjustments
    # -------------------------------------------------------------------
    def adjust(self, amount, description, expires_in_days=None):
        if not amount:
            raise ValidationError({"amount": ["Adjustment amount cannot be zero"]})
        if not description or len(description.strip()) < 3:
            raise ValidationError({"description": ["Description must be at least 3 characters"]})

        if amount > 0:
            return self.credit(amount, description, expires_in_days=expires_in_days, reference="admin_adjustment")
        return self.debit(-amount, description, reference="admin_adjustment")

    def is_debit_reversed(self, transaction_id) -> bool:
        original = self.transaction(transaction_id)
        return bool(original and original.is_reversed)
