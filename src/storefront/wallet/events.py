"""Domain events for the WalletAccount aggregate.

Every event carries the post-change ``balance`` so read models can be
refreshed without reloading the aggregate.
"""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="WalletAccount")
class CoinsCredited:
    __version__ = 1

    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    lot_id = Identifier(required=True)
    amount = Integer(required=True)
    balance = Integer(required=True)
    description = String(max_length=255)
    expires_at = DateTime()


@storefront.event(part_of="WalletAccount")
class CoinsDebited:
    __version__ = 1

    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    amount = Integer(required=True)
    balance = Integer(required=True)
    reference = String(max_length=255)


@storefront.event(part_of="WalletAccount")
class DebitReversed:
    """Coins taken by a debit were put back into the lots they came from."""

    __version__ = 1

    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    reversed_transaction_id = Identifier(required=True)
    amount = Integer(required=True)
    forfeited = Integer(default=0)
    balance = Integer(required=True)


@storefront.event(part_of="WalletAccount")
class CoinsExpired:
    __version__ = 1

    user_id = Identifier(required=True)
    amount = Integer(required=True)
    lots_expired = Integer(required=True)
    balance = Integer(required=True)
    expired_at = DateTime(required=True)
