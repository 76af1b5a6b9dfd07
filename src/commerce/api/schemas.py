"""Pydantic request/response schemas for the commerce API.

These are external contracts, kept separate from the internal Protean
commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
class InitializeInventoryRequest(BaseModel):
    product_id: str
    initial_quantity: int = Field(ge=0, default=0)
    reorder_level: int = Field(ge=0, default=10)


class QuantityRequest(BaseModel):
    quantity: int


class ReorderLevelRequest(BaseModel):
    reorder_level: int


class InventoryResponse(BaseModel):
    product_id: str
    quantity_available: int
    quantity_reserved: int
    total_quantity: int
    reorder_level: int
    is_in_stock: bool
    is_low_stock: bool
    last_updated: datetime | None = None


class InventoryStatisticsResponse(BaseModel):
    total_products: int
    low_stock_count: int
    out_of_stock_count: int
    total_inventory_value: float


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=1)


class TransferCartRequest(BaseModel):
    session_id: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "session_id": "c0ffee-session",
                }
            ]
        }
    }


class CartLineResponse(BaseModel):
    product_id: str
    product_name: str
    product_sku: str | None = None
    unit_price: float
    quantity: int
    line_total: float


class CartSummaryResponse(BaseModel):
    cart_id: str | None = None
    items: list[CartLineResponse] = []
    total_items: int = 0
    subtotal: float = 0.0
    estimated_tax: float = 0.0
    estimated_shipping: float = 0.0
    estimated_total: float = 0.0


class CartCountResponse(BaseModel):
    count: int


class CartLineStatusResponse(BaseModel):
    product_id: str
    requested_quantity: int
    available_quantity: int
    status: str
    note: str | None = None


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class PlaceOrderRequest(BaseModel):
    items: list[OrderItemRequest] = Field(min_length=1)
    shipping_address_id: str
    billing_address_id: str | None = None
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "shipping_address_id": "addr-001",
                    "billing_address_id": None,
                    "notes": "Leave at the front desk",
                }
            ]
        }
    }


class CheckoutRequest(BaseModel):
    shipping_address_id: str
    billing_address_id: str | None = None
    notes: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None
    refund_payment: bool = False


class UpdateOrderStatusRequest(BaseModel):
    status: str
    notes: str | None = None
    refund_payment: bool = False


class OrderPlacedResponse(BaseModel):
    order_id: str
    order_number: str
    total_amount: float


class OrderItemResponse(BaseModel):
    product_id: str
    product_sku: str | None = None
    product_name: str
    unit_price: float
    quantity: int
    total_price: float
    reservation_status: str


class StatusHistoryResponse(BaseModel):
    previous_status: str | None = None
    new_status: str
    changed_by: str | None = None
    notes: str | None = None
    created_at: datetime


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    user_id: str
    status: str
    payment_status: str
    subtotal: float
    tax_amount: float
    shipping_amount: float
    total_amount: float
    currency: str
    shipping_address_id: str
    billing_address_id: str
    notes: str | None = None
    can_be_cancelled: bool
    can_be_refunded: bool
    refund_requested: bool = False
    items: list[OrderItemResponse]
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderStatusResponse(BaseModel):
    order_id: str
    order_number: str
    previous_status: str
    new_status: str
    payment_status: str
