"""Pricing and coin-redemption resolver.

Pure functions over plain values: the checkout reads products, the wallet
and the settings, then hands snapshots here. Nothing in this module touches
a repository, so the same quote can be recomputed anywhere.

Redemption rules:
    value(coins)  = coins / conversion_rate
    cap           = floor(eligible_total * max_usage_percentage / 100)
    coins         = min(wallet available, floor(cap * conversion_rate), requested)

Redemption is refused outright when the program is inactive, when the cart
total is below ``min_cart_value``, or when an allow-list is configured and
no line falls in it.
"""

import math
import re
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger(__name__)

_CATEGORY_TOKEN = re.compile(r"^[a-z0-9 &'\-]+$")


@dataclass(frozen=True)
class CartLine:
    """A cart line joined with the product data checkout read for it."""

    item_id: str
    product_id: str
    name: str
    quantity: int
    unit_price: float
    mrp: float | None = None
    variant_id: str | None = None
    sku: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class PricedLine:
    line: CartLine
    line_total: float
    savings: float
    eligible: bool


@dataclass(frozen=True)
class CoinRedemption:
    coins: int = 0
    value: float = 0.0
    cap_value: float = 0.0
    eligible_total: float = 0.0
    blocked_reason: str | None = None


@dataclass(frozen=True)
class PriceQuote:
    lines: tuple[PricedLine, ...]
    subtotal: float
    mrp_total: float
    redemption: CoinRedemption = field(default_factory=CoinRedemption)

    @property
    def total(self) -> float:
        return round(self.subtotal - self.redemption.value, 2)

    @property
    def savings(self) -> float:
        return round(self.mrp_total - self.subtotal, 2)


@dataclass(frozen=True)
class RedemptionPolicy:
    """The slice of wallet settings the resolver needs."""

    conversion_rate: float
    max_usage_percentage: float
    min_cart_value: float = 0.0
    applicable_categories: str = ""
    is_active: bool = True

    @classmethod
    def from_settings(cls, settings) -> "RedemptionPolicy":
        return cls(
            conversion_rate=settings.conversion_rate,
            max_usage_percentage=settings.max_usage_percentage,
            min_cart_value=settings.min_cart_value or 0.0,
            applicable_categories=settings.applicable_categories or "",
            is_active=bool(settings.is_active),
        )


def parse_allow_list(raw: str | None) -> frozenset[str] | None:
    """Parse the comma separated category allow-list.

    Returns None when every category is eligible: for an empty setting, and
    also for a malformed one, which is logged rather than allowed to block
    every checkout.
    """
    if raw is None or not raw.strip():
        return None

    tokens = [t.strip().lower() for t in raw.split(",")]
    tokens = [t for t in tokens if t]
    if not tokens or any(not _CATEGORY_TOKEN.match(t) for t in tokens):
        logger.warning("malformed_category_allow_list", raw=raw[:200])
        return None
    return frozenset(tokens)


def coins_to_value(coins: int, conversion_rate: float) -> float:
    return round(coins / conversion_rate, 2)


def value_to_coins(value: float, conversion_rate: float) -> int:
    """Coins needed to cover ``value``, rounded up."""
    return math.ceil(round(value * conversion_rate, 6))


def price_lines(lines, allow_list: frozenset[str] | None = None) -> tuple[PricedLine, ...]:
    priced = []
    for line in lines:
        line_total = round(line.unit_price * line.quantity, 2)
        mrp = line.mrp if line.mrp is not None else line.unit_price
        savings = round(max(mrp - line.unit_price, 0) * line.quantity, 2)
        category = (line.category or "").strip().lower()
        eligible = allow_list is None or category in allow_list
        priced.append(PricedLine(line=line, line_total=line_total, savings=savings, eligible=eligible))
    return tuple(priced)


def resolve_redemption(
    subtotal: float,
    eligible_total: float,
    wallet_available: int,
    policy: RedemptionPolicy,
    requested_coins: int = 0,
    restricted: bool = False,
) -> CoinRedemption:
    if not requested_coins or requested_coins <= 0:
        return CoinRedemption(eligible_total=eligible_total)
    if not policy.is_active:
        return CoinRedemption(eligible_total=eligible_total, blocked_reason="wallet_program_inactive")
    if subtotal < policy.min_cart_value:
        return CoinRedemption(eligible_total=eligible_total, blocked_reason="below_min_cart_value")
    if restricted and eligible_total <= 0:
        return CoinRedemption(eligible_total=eligible_total, blocked_reason="no_eligible_categories")

    cap_value = math.floor(eligible_total * policy.max_usage_percentage / 100)
    cap_coins = math.floor(cap_value * policy.conversion_rate)
    coins = max(min(wallet_available, cap_coins, requested_coins), 0)

    return CoinRedemption(
        coins=coins,
        value=coins_to_value(coins, policy.conversion_rate),
        cap_value=float(cap_value),
        eligible_total=eligible_total,
    )


def quote(lines, wallet_available: int, policy: RedemptionPolicy, requested_coins: int = 0) -> PriceQuote:
    """Price ``lines`` and cap the coin redemption."""
    allow_list = parse_allow_list(policy.applicable_categories)
    priced = price_lines(lines, allow_list)

    subtotal = round(sum(p.line_total for p in priced), 2)
    mrp_total = round(subtotal + sum(p.savings for p in priced), 2)
    eligible_total = round(sum(p.line_total for p in priced if p.eligible), 2)

    redemption = resolve_redemption(
        subtotal,
        eligible_total,
        wallet_available,
        policy,
        requested_coins=requested_coins,
        restricted=allow_list is not None,
    )
    return PriceQuote(lines=priced, subtotal=subtotal, mrp_total=mrp_total, redemption=redemption)
