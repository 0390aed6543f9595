"""Pydantic request/response schemas for the storefront API.

These are external contracts, kept separate from the Protean commands they
are translated into.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, default=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "c0ffee00-0000-4000-8000-000000000001",
                    "variant_id": None,
                    "quantity": 2,
                }
            ]
        }
    }


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=1)


class CartItemIdResponse(BaseModel):
    item_id: str


class CartLineSchema(BaseModel):
    item_id: str
    product_id: str
    variant_id: str | None = None
    quantity: int
    name: str | None = None
    unit_price: float | None = None
    mrp: float | None = None
    image: str | None = None
    line_total: float | None = None


class CartResponse(BaseModel):
    user_id: str
    items: list[CartLineSchema] = []
    item_count: int = 0
    total_quantity: int = 0
    subtotal: float = 0.0


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    """Fields are checked by the domain so a bad address surfaces as InvalidAddress."""

    name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    country: str | None = None


class CheckoutRequest(BaseModel):
    shipping_address: AddressSchema
    redeem_coins: int = 0
    payment_method: str = "cod"
    request_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "shipping_address": {
                        "name": "Asha Verma",
                        "phone": "9876543210",
                        "address": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "pincode": "560001",
                    },
                    "redeem_coins": 500,
                    "payment_method": "cod",
                }
            ]
        }
    }


class CheckoutLineSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    name: str
    quantity: int
    unit_price: float


class CheckoutResponse(BaseModel):
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
    lines: list[CheckoutLineSchema] = []


class CheckoutStatusResponse(BaseModel):
    request_id: str
    state: str
    states_entered: list[str]
    runs: int
    order_id: str | None = None
    coins_redeemed: int = 0
    failure_code: str | None = None
    failure_reason: str | None = None


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderLineSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    name: str
    sku: str | None = None
    quantity: int
    unit_price: float
    line_total: float


class OrderResponse(BaseModel):
    order_id: str
    user_id: str
    status: str
    payment_method: str
    subtotal: float
    coins_redeemed: int
    coin_discount: float
    total: float
    lines: list[OrderLineSchema]
    shipping_address: dict | None = None
    dispatch_status: str | None = None
    shiprocket_order_id: str | None = None
    shiprocket_shipment_id: str | None = None
    awb_code: str | None = None
    courier_name: str | None = None
    tracking_status: str | None = None
    dispatch_error: str | None = None
    placed_at: datetime | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int


class UpdateOrderStatusRequest(BaseModel):
    status: str


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class DispatchResponse(BaseModel):
    order_id: str
    shiprocket_order_id: str | None = None
    shiprocket_shipment_id: str | None = None
    awb_code: str | None = None
    courier_name: str | None = None
    status: str
    already_dispatched: bool = False
    awb_error: str | None = None


class TrackingResponse(BaseModel):
    order_id: str
    tracking_status: str
    status: str
    events: list[dict] = []


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------
class WalletResponse(BaseModel):
    user_id: str
    balance: int = 0
    next_expiry: datetime | None = None
    lifetime_earned: int = 0
    lifetime_redeemed: int = 0
    lifetime_expired: int = 0


class WalletTransactionSchema(BaseModel):
    transaction_id: str
    txn_type: str
    amount: int
    description: str | None = None
    reference: str | None = None
    expires_at: datetime | None = None
    is_reversed: bool = False
    created_at: datetime | None = None


class WalletTransactionsPage(BaseModel):
    transactions: list[WalletTransactionSchema]
    page: int
    limit: int
    total: int


class AdjustWalletRequest(BaseModel):
    amount: int
    description: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"amount": 250, "description": "Goodwill credit for delayed delivery"},
            ]
        }
    }


class WalletSettingsSchema(BaseModel):
    first_purchase_coins: int | None = None
    coin_expiry_days: int | None = None
    conversion_rate: float | None = None
    max_usage_percentage: float | None = None
    min_cart_value: float | None = None
    applicable_categories: str | None = None
    is_active: bool | None = None


class ExpirySweepResponse(BaseModel):
    wallets_scanned: int
    wallets_touched: int
    wallets_skipped: int = 0
    coins_expired: int


# ---------------------------------------------------------------------------
# Shipping
# ---------------------------------------------------------------------------
class ShippingSettingsSchema(BaseModel):
    auto_ship: bool | None = None
    default_courier_id: int | None = None
    default_courier_name: str | None = None
    preferred_couriers: str | None = None
    return_address: str | None = None
    notify_customers: bool | None = None
    pickup_location: str | None = None
    package_length: float | None = None
    package_breadth: float | None = None
    package_height: float | None = None
    package_weight: float | None = None


class FakeCarrierConfigRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Carrier unavailable"
    retryable: bool = True
    fail_times: int | None = None
    tracking_status: str = "In Transit"
    awb_fail_times: int = 0


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
class CreateProductRequest(BaseModel):
    name: str
    price: float = Field(ge=0)
    mrp: float | None = Field(default=None, ge=0)
    stock: int = Field(ge=0, default=0)
    category: str | None = None
    description: str | None = None
    images: str | list[str] | None = None


class UpdateProductRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    price: float | None = Field(default=None, ge=0)
    mrp: float | None = Field(default=None, ge=0)
    images: str | list[str] | None = None


class AddVariantRequest(BaseModel):
    sku: str
    name: str | None = None
    price: float = Field(ge=0)
    mrp: float | None = Field(default=None, ge=0)
    stock: int = Field(ge=0, default=0)


class RestockRequest(BaseModel):
    quantity: int = Field(ge=1)
    variant_id: str | None = None


class RejectProductRequest(BaseModel):
    reason: str


class ProductIdResponse(BaseModel):
    product_id: str


class VariantIdResponse(BaseModel):
    variant_id: str


class VariantSchema(BaseModel):
    variant_id: str
    sku: str
    name: str | None = None
    price: float
    mrp: float | None = None
    stock: int


class ProductResponse(BaseModel):
    product_id: str
    seller_id: str
    name: str
    description: str | None = None
    category: str | None = None
    price: float
    mrp: float | None = None
    stock: int
    images: list[str] = []
    image_kind: str | None = None
    approval_status: str
    rejection_reason: str | None = None
    variants: list[VariantSchema] = []


class ProductListResponse(BaseModel):
    products: list[ProductResponse]
    total: int


# ---------------------------------------------------------------------------
# Wishlist
# ---------------------------------------------------------------------------
class WishlistRequest(BaseModel):
    product_id: str


class WishlistResponse(BaseModel):
    user_id: str
    product_ids: list[str]


class WishlistCheckResponse(BaseModel):
    product_id: str
    in_wishlist: bool


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
class OpenChatRequest(BaseModel):
    subject: str | None = None


class ChatSessionIdResponse(BaseModel):
    session_id: str


class PostChatMessageRequest(BaseModel):
    body: str


class ChatMessageSchema(BaseModel):
    message_id: str
    sequence: int
    sender_id: str
    sender_role: str
    body: str
    sent_at: datetime | None = None


class ChatHistoryResponse(BaseModel):
    session_id: str
    status: str
    messages: list[ChatMessageSchema]
