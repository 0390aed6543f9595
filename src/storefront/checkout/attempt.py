"""CheckoutAttempt aggregate — the persisted progress of one checkout request.

Keyed by (user, client request id), so a retried request finds the attempt
it started before and either replays its result or is told it is still
running.

State Machine:
    DRAFT → STOCK_VERIFIED → PRICE_LOCKED → WALLET_DEBITED → ORDER_CREATED → COMMITTED
    PRICE_LOCKED → ORDER_CREATED (no coins redeemed)
    any in-flight state → ROLLED_BACK → DRAFT (re-run)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from storefront.domain import storefront


class AttemptState(Enum):
    DRAFT = "Draft"
    STOCK_VERIFIED = "StockVerified"
    PRICE_LOCKED = "PriceLocked"
    WALLET_DEBITED = "WalletDebited"
    ORDER_CREATED = "OrderCreated"
    COMMITTED = "Committed"
    ROLLED_BACK = "RolledBack"


_VALID_TRANSITIONS = {
    AttemptState.DRAFT: {AttemptState.STOCK_VERIFIED, AttemptState.ROLLED_BACK},
    AttemptState.STOCK_VERIFIED: {AttemptState.PRICE_LOCKED, AttemptState.ROLLED_BACK},
    AttemptState.PRICE_LOCKED: {
        AttemptState.WALLET_DEBITED,
        AttemptState.ORDER_CREATED,
        AttemptState.ROLLED_BACK,
    },
    AttemptState.WALLET_DEBITED: {AttemptState.ORDER_CREATED, AttemptState.ROLLED_BACK},
    AttemptState.ORDER_CREATED: {AttemptState.COMMITTED},
    AttemptState.COMMITTED: set(),  # Terminal
    AttemptState.ROLLED_BACK: {AttemptState.DRAFT},
}

_IN_FLIGHT = {
    AttemptState.DRAFT,
    AttemptState.STOCK_VERIFIED,
    AttemptState.PRICE_LOCKED,
    AttemptState.WALLET_DEBITED,
    AttemptState.ORDER_CREATED,
}


def attempt_key(user_id, request_id) -> str:
    return f"{user_id}:{request_id}"


@storefront.aggregate
class CheckoutAttempt:
    key = String(identifier=True, max_length=255)
    user_id = Identifier(required=True)
    request_id = String(required=True, max_length=100)
    state = String(choices=AttemptState, default=AttemptState.DRAFT.value)
    history = Text()  # JSON list of states entered, in order
    runs = Integer(default=1)
    coins_redeemed = Integer(default=0)
    payable = Float()
    wallet_transaction_id = Identifier()
    order_id = Identifier()
    failure_code = String(max_length=50)
    failure_reason = Text()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def start(cls, user_id, request_id):
        now = datetime.now(UTC)
        return cls(
            key=attempt_key(user_id, request_id),
            user_id=user_id,
            request_id=request_id,
            state=AttemptState.DRAFT.value,
            history=json.dumps([AttemptState.DRAFT.value]),
            created_at=now,
            updated_at=now,
        )

    @property
    def is_in_flight(self) -> bool:
        return AttemptState(self.state) in _IN_FLIGHT

    @property
    def is_committed(self) -> bool:
        return self.state == AttemptState.COMMITTED.value

    @property
    def states_entered(self) -> list[str]:
        return json.loads(self.history) if self.history else []

    def advance(self, target, **details):
        """Move to ``target`` and record ``details`` (order id, coins, ...) on the attempt."""
        target = AttemptState(target)
        current = AttemptState(self.state)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"state": [f"Cannot transition from {current.value} to {target.value}"]})

        for field, value in details.items():
            setattr(self, field, value)
        self.state = target.value
        self.history = json.dumps([*self.states_entered, target.value])
        self.updated_at = datetime.now(UTC)

    def roll_back(self, code, reason):
        self.advance(AttemptState.ROLLED_BACK, failure_code=code, failure_reason=reason)

    def restart(self):
        """Re-run a rolled back attempt from the beginning."""
        self.advance(
            AttemptState.DRAFT,
            runs=(self.runs or 1) + 1,
            failure_code=None,
            failure_reason=None,
            coins_redeemed=0,
            payable=None,
            wallet_transaction_id=None,
        )
