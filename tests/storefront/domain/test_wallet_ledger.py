"""Tests for the WalletAccount coin ledger: lots, FIFO debits, reversal and expiry."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from storefront.errors import InsufficientFunds
from storefront.wallet.events import CoinsExpired, DebitReversed
from storefront.wallet.wallet import LotStatus, TransactionType, WalletAccount

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def wallet():
    return WalletAccount.open("user-001")


def _lots_by_source(wallet):
    return {lot.source: lot for lot in wallet.lots}


class TestCredit:
    def test_credit_opens_lot_and_raises_balance(self, wallet):
        wallet.credit(100, "Welcome bonus", expires_in_days=30, now=NOW)
        assert wallet.balance == 100
        lot = wallet.lots[0]
        assert lot.remaining == 100
        assert lot.expires_at == NOW + timedelta(days=30)

    def test_credit_without_expiry(self, wallet):
        wallet.credit(50, "Referral", now=NOW)
        assert wallet.lots[0].expires_at is None
        assert wallet.next_expiry(NOW) is None

    def test_credit_must_be_positive(self, wallet):
        with pytest.raises(ValidationError):
            wallet.credit(0, "Nothing")


class TestDebit:
    def test_debit_draws_earliest_expiry_first(self, wallet):
        wallet.credit(100, "late", expires_in_days=60, now=NOW)
        wallet.credit(100, "early", expires_in_days=10, now=NOW)
        wallet.debit(150, "Checkout", now=NOW)

        lots = _lots_by_source(wallet)
        assert lots["early"].remaining == 0
        assert lots["late"].remaining == 50
        assert wallet.balance == 50

    def test_lots_without_expiry_are_spent_last(self, wallet):
        wallet.credit(100, "forever", now=NOW)
        wallet.credit(100, "expiring", expires_in_days=5, now=NOW)
        wallet.debit(100, "Checkout", now=NOW)
        lots = _lots_by_source(wallet)
        assert lots["expiring"].remaining == 0
        assert lots["forever"].remaining == 100

    def test_debit_records_allocations(self, wallet):
        wallet.credit(30, "a", expires_in_days=1, now=NOW)
        wallet.credit(30, "b", expires_in_days=2, now=NOW)
        txn = wallet.debit(40, "Checkout", now=NOW)
        allocations = json.loads(txn.allocations)
        assert [a["amount"] for a in allocations] == [30, 10]

    def test_insufficient_funds(self, wallet):
        wallet.credit(100, "Bonus", now=NOW)
        with pytest.raises(InsufficientFunds) as exc:
            wallet.debit(101, "Checkout", now=NOW)
        assert exc.value.available == 100
        assert wallet.balance == 100

    def test_coins_past_due_are_not_spendable(self, wallet):
        wallet.credit(100, "Bonus", expires_in_days=1, now=NOW)
        later = NOW + timedelta(days=2)
        assert wallet.available_balance(later) == 0
        with pytest.raises(InsufficientFunds):
            wallet.debit(10, "Checkout", now=later)


class TestReverseDebit:
    def test_reversal_restores_the_same_lots(self, wallet):
        wallet.credit(100, "a", expires_in_days=10, now=NOW)
        txn = wallet.debit(60, "Checkout", now=NOW)
        wallet.reverse_debit(str(txn.id), "Rolled back", now=NOW)

        assert wallet.balance == 100
        assert wallet.lots[0].remaining == 100
        assert wallet.is_debit_reversed(str(txn.id))
        event = wallet._events[-1]
        assert isinstance(event, DebitReversed)
        assert event.amount == 60
        assert event.forfeited == 0

    def test_reversing_twice_is_refused(self, wallet):
        wallet.credit(100, "a", now=NOW)
        txn = wallet.debit(60, "Checkout", now=NOW)
        wallet.reverse_debit(str(txn.id), "Rolled back", now=NOW)
        with pytest.raises(ValidationError):
            wallet.reverse_debit(str(txn.id), "Again", now=NOW)

    def test_coins_from_expired_lots_are_forfeited(self, wallet):
        wallet.credit(100, "short", expires_in_days=1, now=NOW)
        txn = wallet.debit(40, "Checkout", now=NOW)
        wallet.expire_lots(NOW + timedelta(days=2))

        result = wallet.reverse_debit(str(txn.id), "Order cancelled", now=NOW + timedelta(days=3))
        assert result is None
        assert wallet.balance == 0
        assert wallet._events[-1].forfeited == 40

    def test_reversing_unknown_transaction(self, wallet):
        with pytest.raises(ValidationError):
            wallet.reverse_debit("nope", "Rolled back")


class TestExpiry:
    def test_expire_moves_remaining_into_expired_transaction(self, wallet):
        wallet.credit(100, "Promo", expires_in_days=1, now=NOW)
        wallet.debit(30, "Checkout", now=NOW)

        expired = wallet.expire_lots(NOW + timedelta(days=1))
        assert expired == 70
        assert wallet.balance == 0
        assert wallet.lots[0].status == LotStatus.EXPIRED.value
        expired_txns = [t for t in wallet.transactions if t.txn_type == TransactionType.EXPIRED.value]
        assert expired_txns[0].amount == 70
        assert isinstance(wallet._events[-1], CoinsExpired)

    def test_nothing_due(self, wallet):
        wallet.credit(100, "Promo", expires_in_days=10, now=NOW)
        assert wallet.expire_lots(NOW) == 0
        assert wallet.balance == 100

    def test_sweep_is_idempotent(self, wallet):
        wallet.credit(100, "Promo", expires_in_days=1, now=NOW)
        later = NOW + timedelta(days=2)
        wallet.expire_lots(later)
        assert wallet.expire_lots(later) == 0
        assert wallet.balance == 0

    def test_only_due_lots_expire(self, wallet):
        wallet.credit(100, "soon", expires_in_days=1, now=NOW)
        wallet.credit(50, "later", expires_in_days=30, now=NOW)
        wallet.expire_lots(NOW + timedelta(days=2))
        assert wallet.balance == 50
        assert wallet.next_expiry(NOW + timedelta(days=2)) == NOW + timedelta(days=30)


class TestInvariant:
    def test_balance_tracks_active_lots_through_mixed_operations(self, wallet):
        wallet.credit(100, "a", expires_in_days=1, now=NOW)
        wallet.credit(200, "b", expires_in_days=5, now=NOW)
        txn = wallet.debit(150, "Checkout", now=NOW)
        wallet.expire_lots(NOW + timedelta(days=2))
        wallet.reverse_debit(str(txn.id), "Cancelled", now=NOW + timedelta(days=2))

        held = sum(lot.remaining for lot in wallet.lots if lot.status == LotStatus.ACTIVE.value)
        assert wallet.balance == held == 200


class TestAdjust:
    def test_positive_adjustment_credits(self, wallet):
        wallet.adjust(250, "Goodwill credit")
        assert wallet.balance == 250

    def test_negative_adjustment_debits(self, wallet):
        wallet.adjust(250, "Goodwill credit")
        wallet.adjust(-100, "Correction")
        assert wallet.balance == 150

    def test_zero_refused(self, wallet):
        with pytest.raises(ValidationError):
            wallet.adjust(0, "Nothing")

    def test_description_required(self, wallet):
        with pytest.raises(ValidationError):
            wallet.adjust(10, "ab")

    def test_negative_beyond_balance(self, wallet):
        with pytest.raises(InsufficientFunds):
            wallet.adjust(-10, "Correction")


class TestTransactionsPage:
    def test_newest_first(self, wallet):
        wallet.credit(10, "first", now=NOW)
        wallet.credit(20, "second", now=NOW + timedelta(minutes=1))
        items, total = wallet.transactions_page(page=1, limit=1)
        assert total == 2
        assert items[0].description == "second"
