"""Checkout assembler — turns a user's cart into an order.

Each step is persisted on the ``CheckoutAttempt`` before the next begins:

    1. Draft          attempt opened (or replayed) for (user, request id)
    2. StockVerified  every cart line read against a fresh product
    3. PriceLocked    lines priced, coin redemption capped
    4. WalletDebited  coins spent (skipped when none are redeemed)
    5. OrderCreated   stock reserved, order written, cart lines consumed,
                      all in the PlaceOrder unit of work
    6. Committed

A failure after the wallet debit reverses the debit before the error is
re-raised, and the attempt ends RolledBack. Auto-ship runs after commit; a
carrier failure there is recorded on the order and returned, never undoes it.
"""

import json
from dataclasses import dataclass, field
from uuid import uuid4

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.cart.items import cart_for
from storefront.catalogue.product import Product
from storefront.checkout.attempt import AttemptState, CheckoutAttempt, attempt_key
from storefront.errors import ConflictError, ExternalServiceError, InsufficientStock, StorefrontError
from storefront.order.order import Order, PaymentMethod, validate_address
from storefront.order.placement import PlaceOrder
from storefront.pricing.resolver import CartLine, RedemptionPolicy, quote
from storefront.shipping.dispatch import push_order_to_carrier
from storefront.shipping.settings import load_shipping_settings
from storefront.wallet.ledger import DebitCoins, ReverseDebit, wallet_for
from storefront.wallet.settings import load_wallet_settings

logger = structlog.get_logger(__name__)

PLACE_ORDER_ATTEMPTS = 2


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    request_id: str
    state: str
    subtotal: float
    coins_redeemed: int
    coin_discount: float
    total: float
    replayed: bool = False
    dispatch: dict | None = None
    dispatch_error: str | None = None
    lines: list[dict] = field(default_factory=list)


def _attempts():
    return current_domain.repository_for(CheckoutAttempt)


def _advance(key, target, **details) -> CheckoutAttempt:
    """Reload the attempt, move it to ``target`` and persist it."""
    attempt = _attempts().get(key)
    attempt.advance(target, **details)
    _attempts().add(attempt)
    return attempt


def _result_from_order(order: Order, request_id, replayed, dispatch=None, dispatch_error=None) -> CheckoutResult:
    return CheckoutResult(
        order_id=str(order.id),
        request_id=request_id,
        state=AttemptState.COMMITTED.value,
        subtotal=order.subtotal,
        coins_redeemed=order.coins_redeemed or 0,
        coin_discount=order.coin_discount or 0.0,
        total=order.total,
        replayed=replayed,
        dispatch=dispatch,
        dispatch_error=dispatch_error,
        lines=[
            {
                "product_id": str(line.product_id),
                "variant_id": str(line.variant_id) if line.variant_id else None,
                "name": line.name,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
            }
            for line in order.lines
        ],
    )


def _open_attempt(user_id, request_id) -> tuple[CheckoutAttempt, bool]:
    """Start a new attempt or resolve a replay.

    Returns ``(attempt, replay)``; ``replay`` is True when the request already
    committed.
    """
    key = attempt_key(user_id, request_id)
    try:
        attempt = _attempts().get(key)
    except ObjectNotFoundError:
        attempt = CheckoutAttempt.start(user_id, request_id)
        _attempts().add(attempt)
        return attempt, False

    if attempt.is_committed:
        return attempt, True
    if attempt.is_in_flight:
        raise ConflictError("checkout", f"Request {request_id} is already being processed ({attempt.state})")

    attempt.restart()
    _attempts().add(attempt)
    return attempt, False


def _verify_stock(snapshot) -> list[CartLine]:
    """Join cart lines with fresh product data; refuse unavailable lines up front."""
    repo = current_domain.repository_for(Product)
    products = {}
    lines = []
    shortfalls = []
    wanted = {}

    for entry in snapshot:
        product_id = entry["product_id"]
        if product_id not in products:
            try:
                products[product_id] = repo.get(product_id)
            except ObjectNotFoundError:
                raise ValidationError({"cart": [f"Product {product_id} is no longer available"]}) from None
        product = products[product_id]
        if not product.is_purchasable:
            raise ValidationError({"cart": [f"{product.name} is no longer available for purchase"]})

        variant_id = entry["variant_id"]
        wanted[(product_id, variant_id)] = wanted.get((product_id, variant_id), 0) + entry["quantity"]
        lines.append(
            CartLine(
                item_id=entry["item_id"],
                product_id=product_id,
                variant_id=variant_id,
                name=product.name,
                sku=product.sku_for(variant_id),
                category=product.category,
                quantity=entry["quantity"],
                unit_price=product.unit_price(variant_id),
                mrp=product.unit_mrp(variant_id),
            )
        )

    for (product_id, variant_id), quantity in wanted.items():
        missing = products[product_id].shortfall(quantity, variant_id)
        if missing:
            shortfalls.append(missing)
    if shortfalls:
        raise InsufficientStock(shortfalls)
    return lines


def _place_order(command: PlaceOrder) -> str:
    """Run PlaceOrder, re-reading products once if a concurrent writer won."""
    for attempt in range(1, PLACE_ORDER_ATTEMPTS + 1):
        try:
            return current_domain.process(command, asynchronous=False)
        except ExpectedVersionError as exc:
            logger.warning("place_order_version_conflict", user_id=command.user_id, attempt=attempt)
            if attempt == PLACE_ORDER_ATTEMPTS:
                raise ConflictError("order", "Stock changed while placing the order, please retry") from exc


def _compensate(key, exc) -> None:
    attempt = _attempts().get(key)
    code = exc.code if isinstance(exc, StorefrontError) else type(exc).__name__
    reason = str(exc)

    if attempt.wallet_transaction_id:
        try:
            current_domain.process(
                ReverseDebit(
                    user_id=str(attempt.user_id),
                    transaction_id=str(attempt.wallet_transaction_id),
                    description=f"Checkout {attempt.request_id} rolled back",
                ),
                asynchronous=False,
            )
        except Exception:
            # The attempt stays at WalletDebited so it is visible for manual repair
            logger.exception(
                "checkout_compensation_failed",
                user_id=str(attempt.user_id),
                request_id=attempt.request_id,
                wallet_transaction_id=str(attempt.wallet_transaction_id),
            )
            raise

    attempt.roll_back(code, reason)
    _attempts().add(attempt)
    logger.info(
        "checkout_rolled_back",
        user_id=str(attempt.user_id),
        request_id=attempt.request_id,
        code=code,
        coins_refunded=attempt.coins_redeemed if attempt.wallet_transaction_id else 0,
    )


def _auto_ship(order_id) -> tuple[dict | None, str | None]:
    if not load_shipping_settings().auto_ship:
        return None, None
    try:
        return push_order_to_carrier(order_id), None
    except ExternalServiceError as exc:
        # Already recorded on the order by the dispatcher; the order stands
        logger.warning("auto_ship_failed", order_id=str(order_id), reason=exc.reason, attempts=exc.attempts)
        return None, exc.message


def checkout(user_id, address, redeem_coins=0, request_id=None, payment_method=PaymentMethod.COD.value):
    """Place an order from the user's cart. Safe to retry with the same ``request_id``."""
    shipping_address = validate_address(address)
    if payment_method not in {m.value for m in PaymentMethod}:
        raise ValidationError({"payment_method": [f"Unknown payment method {payment_method}"]})
    if redeem_coins is not None and redeem_coins < 0:
        raise ValidationError({"redeem_coins": ["Cannot redeem a negative number of coins"]})

    request_id = request_id or uuid4().hex
    attempt, replay = _open_attempt(user_id, request_id)
    if replay:
        order = current_domain.repository_for(Order).get(attempt.order_id)
        logger.info("checkout_replayed", user_id=str(user_id), request_id=request_id, order_id=str(order.id))
        return _result_from_order(order, request_id, replayed=True)

    key = attempt.key
    order_id = None
    try:
        snapshot = cart_for(user_id).snapshot()
        if not snapshot:
            raise ValidationError({"cart": ["Cart is empty"]})

        lines = _verify_stock(snapshot)
        _advance(key, AttemptState.STOCK_VERIFIED)

        policy = RedemptionPolicy.from_settings(load_wallet_settings())
        available = wallet_for(user_id).available_balance()
        priced = quote(lines, available, policy, requested_coins=redeem_coins or 0)
        coins = priced.redemption.coins
        _advance(key, AttemptState.PRICE_LOCKED, coins_redeemed=coins, payable=priced.total)

        wallet_transaction_id = None
        if coins:
            wallet_transaction_id = current_domain.process(
                DebitCoins(
                    user_id=str(user_id),
                    amount=coins,
                    description=f"Redeemed at checkout {request_id}",
                    reference=f"checkout:{request_id}",
                ),
                asynchronous=False,
            )
            _advance(key, AttemptState.WALLET_DEBITED, wallet_transaction_id=wallet_transaction_id)

        order_id = _place_order(
            PlaceOrder(
                user_id=str(user_id),
                checkout_request_id=request_id,
                lines=json.dumps(
                    [
                        {
                            "item_id": p.line.item_id,
                            "product_id": p.line.product_id,
                            "variant_id": p.line.variant_id,
                            "name": p.line.name,
                            "sku": p.line.sku,
                            "category": p.line.category,
                            "quantity": p.line.quantity,
                            "unit_price": p.line.unit_price,
                            "mrp": p.line.mrp,
                        }
                        for p in priced.lines
                    ]
                ),
                shipping_address=json.dumps(shipping_address),
                subtotal=priced.subtotal,
                total=priced.total,
                coins_redeemed=coins,
                coin_discount=priced.redemption.value,
                wallet_transaction_id=wallet_transaction_id,
                payment_method=payment_method,
            )
        )
        _advance(key, AttemptState.ORDER_CREATED, order_id=order_id)
    except Exception as exc:
        if order_id is None:
            _compensate(key, exc)
        if isinstance(exc, ExpectedVersionError):
            raise ConflictError("wallet", "Wallet changed during checkout, please retry") from exc
        raise

    _advance(key, AttemptState.COMMITTED)
    logger.info(
        "checkout_committed",
        user_id=str(user_id),
        request_id=request_id,
        order_id=order_id,
        total=priced.total,
        coins_redeemed=coins,
    )

    dispatch, dispatch_error = _auto_ship(order_id)
    order = current_domain.repository_for(Order).get(order_id)
    return _result_from_order(order, request_id, replayed=False, dispatch=dispatch, dispatch_error=dispatch_error)


def checkout_status(user_id, request_id) -> CheckoutAttempt:
    return _attempts().get(attempt_key(user_id, request_id))
