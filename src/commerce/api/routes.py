"""FastAPI routes for the commerce API — inventory, carts and orders.

Thin adapters over the ledger, cart and order services. Shoppers identify
themselves with ``X-User-Id`` or, when anonymous, ``X-Session-Id``;
administrative routes require ``X-User-Role: admin``.
"""

from fastapi import APIRouter, Header, HTTPException

from commerce.api.schemas import (
    AddCartItemRequest,
    CancelOrderRequest,
    CartCountResponse,
    CartLineStatusResponse,
    CartSummaryResponse,
    CheckoutRequest,
    InitializeInventoryRequest,
    InventoryResponse,
    InventoryStatisticsResponse,
    OrderItemResponse,
    OrderPlacedResponse,
    OrderResponse,
    OrderStatusResponse,
    PlaceOrderRequest,
    QuantityRequest,
    ReorderLevelRequest,
    StatusHistoryResponse,
    StatusResponse,
    TransferCartRequest,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
)
from commerce.cart.service import cart_service
from commerce.exceptions import PermissionDenied
from commerce.inventory.ledger import inventory_ledger
from commerce.order.order import ActorRole
from commerce.order.service import order_service
from commerce.utils.logging import bind_actor


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _require_user(x_user_id: str | None) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    bind_actor(user_id=x_user_id)
    return x_user_id


def _require_admin(x_user_role: str | None) -> None:
    if (x_user_role or "").lower() != ActorRole.ADMIN.value.lower():
        raise HTTPException(status_code=403, detail="Admin role required")
    bind_actor(role=ActorRole.ADMIN.value)


def _require_owner(x_user_id: str | None, x_session_id: str | None) -> dict:
    if x_user_id:
        bind_actor(user_id=x_user_id)
        return {"user_id": x_user_id}
    if x_session_id:
        bind_actor(session_id=x_session_id)
        return {"session_id": x_session_id}
    raise HTTPException(status_code=401, detail="X-User-Id or X-Session-Id header is required")


def _forbidden(exc: PermissionDenied) -> HTTPException:
    return HTTPException(status_code=403, detail=str(exc))


def _inventory_response(record) -> InventoryResponse:
    return InventoryResponse(
        product_id=str(record.product_id),
        quantity_available=record.quantity_available,
        quantity_reserved=record.quantity_reserved,
        total_quantity=record.total_quantity,
        reorder_level=record.reorder_level,
        is_in_stock=record.is_in_stock,
        is_low_stock=record.is_low_stock,
        last_updated=record.last_updated,
    )


def _order_response(order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        user_id=str(order.user_id),
        status=order.status,
        payment_status=order.payment_status,
        subtotal=order.subtotal,
        tax_amount=order.tax_amount,
        shipping_amount=order.shipping_amount,
        total_amount=order.total_amount,
        currency=order.currency,
        shipping_address_id=str(order.shipping_address_id),
        billing_address_id=str(order.billing_address_id),
        notes=order.notes,
        can_be_cancelled=order.can_be_cancelled,
        can_be_refunded=order.can_be_refunded,
        refund_requested=bool(order.refund_requested),
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                product_sku=item.product_sku,
                product_name=item.product_name,
                unit_price=item.unit_price,
                quantity=item.quantity,
                total_price=item.total_price,
                reservation_status=item.reservation_status,
            )
            for item in order.items
        ],
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _status_response(outcome: dict) -> OrderStatusResponse:
    return OrderStatusResponse(
        order_id=outcome["order_id"],
        order_number=outcome["order_number"],
        previous_status=outcome["previous_status"],
        new_status=outcome["new_status"],
        payment_status=outcome["payment_status"],
    )


def _owned_order(order_id: str, user_id: str):
    order = order_service.get(order_id)
    if str(order.user_id) != str(user_id):
        raise HTTPException(status_code=403, detail="Order belongs to another customer")
    return order


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.post("", status_code=201, response_model=InventoryResponse)
async def initialize_inventory(
    body: InitializeInventoryRequest, x_user_role: str | None = Header(default=None)
) -> InventoryResponse:
    _require_admin(x_user_role)
    inventory_ledger.initialize(body.product_id, body.initial_quantity, body.reorder_level)
    return _inventory_response(inventory_ledger.get(body.product_id))


@inventory_router.get("/low-stock", response_model=list[InventoryResponse])
async def low_stock() -> list[InventoryResponse]:
    return [_inventory_response(record) for record in inventory_ledger.low_stock()]


@inventory_router.get("/out-of-stock", response_model=list[InventoryResponse])
async def out_of_stock() -> list[InventoryResponse]:
    return [_inventory_response(record) for record in inventory_ledger.out_of_stock()]


@inventory_router.get("/statistics", response_model=InventoryStatisticsResponse)
async def inventory_statistics(x_user_role: str | None = Header(default=None)) -> InventoryStatisticsResponse:
    _require_admin(x_user_role)
    return InventoryStatisticsResponse(**inventory_ledger.statistics())


@inventory_router.get("/{product_id}", response_model=InventoryResponse)
async def get_inventory(product_id: str) -> InventoryResponse:
    return _inventory_response(inventory_ledger.get(product_id))


@inventory_router.post("/{product_id}/add", response_model=InventoryResponse)
async def add_stock(
    product_id: str, body: QuantityRequest, x_user_role: str | None = Header(default=None)
) -> InventoryResponse:
    _require_admin(x_user_role)
    inventory_ledger.add_stock(product_id, body.quantity)
    return _inventory_response(inventory_ledger.get(product_id))


@inventory_router.post("/{product_id}/remove", response_model=InventoryResponse)
async def remove_stock(
    product_id: str, body: QuantityRequest, x_user_role: str | None = Header(default=None)
) -> InventoryResponse:
    _require_admin(x_user_role)
    inventory_ledger.remove_stock(product_id, body.quantity)
    return _inventory_response(inventory_ledger.get(product_id))


@inventory_router.put("/{product_id}/available", response_model=InventoryResponse)
async def update_available(
    product_id: str, body: QuantityRequest, x_user_role: str | None = Header(default=None)
) -> InventoryResponse:
    _require_admin(x_user_role)
    inventory_ledger.update_available(product_id, body.quantity)
    return _inventory_response(inventory_ledger.get(product_id))


@inventory_router.put("/{product_id}/reorder-level", response_model=InventoryResponse)
async def set_reorder_level(
    product_id: str, body: ReorderLevelRequest, x_user_role: str | None = Header(default=None)
) -> InventoryResponse:
    _require_admin(x_user_role)
    inventory_ledger.set_reorder_level(product_id, body.reorder_level)
    return _inventory_response(inventory_ledger.get(product_id))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartSummaryResponse)
async def get_cart(
    x_user_id: str | None = Header(default=None), x_session_id: str | None = Header(default=None)
) -> CartSummaryResponse:
    owner = _require_owner(x_user_id, x_session_id)
    return CartSummaryResponse(**cart_service.summary(**owner).to_dict())


@cart_router.get("/count", response_model=CartCountResponse)
async def get_cart_count(
    x_user_id: str | None = Header(default=None), x_session_id: str | None = Header(default=None)
) -> CartCountResponse:
    owner = _require_owner(x_user_id, x_session_id)
    return CartCountResponse(count=cart_service.item_count(**owner))


@cart_router.get("/validate", response_model=list[CartLineStatusResponse])
async def validate_cart(
    x_user_id: str | None = Header(default=None), x_session_id: str | None = Header(default=None)
) -> list[CartLineStatusResponse]:
    owner = _require_owner(x_user_id, x_session_id)
    return [CartLineStatusResponse(**line) for line in cart_service.validate(**owner)]


@cart_router.post("/items", response_model=CartSummaryResponse)
async def add_cart_item(
    body: AddCartItemRequest,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartSummaryResponse:
    owner = _require_owner(x_user_id, x_session_id)
    cart_service.add(body.product_id, body.quantity, **owner)
    return CartSummaryResponse(**cart_service.summary(**owner).to_dict())


@cart_router.put("/items/{product_id}", response_model=CartSummaryResponse)
async def update_cart_item(
    product_id: str,
    body: UpdateCartItemRequest,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartSummaryResponse:
    owner = _require_owner(x_user_id, x_session_id)
    cart_service.update(product_id, body.quantity, **owner)
    return CartSummaryResponse(**cart_service.summary(**owner).to_dict())


@cart_router.delete("/items/{product_id}", response_model=CartSummaryResponse)
async def remove_cart_item(
    product_id: str,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartSummaryResponse:
    owner = _require_owner(x_user_id, x_session_id)
    cart_service.remove(product_id, **owner)
    return CartSummaryResponse(**cart_service.summary(**owner).to_dict())


@cart_router.delete("", response_model=StatusResponse)
async def clear_cart(
    x_user_id: str | None = Header(default=None), x_session_id: str | None = Header(default=None)
) -> StatusResponse:
    owner = _require_owner(x_user_id, x_session_id)
    cart_service.clear(**owner)
    return StatusResponse(status="cleared")


@cart_router.post("/transfer", response_model=CartSummaryResponse)
async def transfer_cart(
    body: TransferCartRequest, x_user_id: str | None = Header(default=None)
) -> CartSummaryResponse:
    """Merge an anonymous session cart into the signed-in user's cart."""
    user_id = _require_user(x_user_id)
    cart_service.transfer(body.session_id, user_id)
    return CartSummaryResponse(**cart_service.summary(user_id=user_id).to_dict())


# ---------------------------------------------------------------------------
# Order Router (customer self-service)
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderPlacedResponse)
async def place_order(body: PlaceOrderRequest, x_user_id: str | None = Header(default=None)) -> OrderPlacedResponse:
    user_id = _require_user(x_user_id)
    outcome = order_service.place_order(
        user_id=user_id,
        items=[item.model_dump() for item in body.items],
        shipping_address_id=body.shipping_address_id,
        billing_address_id=body.billing_address_id,
        notes=body.notes,
    )
    return OrderPlacedResponse(
        order_id=outcome["order_id"],
        order_number=outcome["order_number"],
        total_amount=outcome["total_amount"],
    )


@order_router.post("/checkout", status_code=201, response_model=OrderPlacedResponse)
async def checkout(body: CheckoutRequest, x_user_id: str | None = Header(default=None)) -> OrderPlacedResponse:
    """Place an order from everything in the user's cart."""
    user_id = _require_user(x_user_id)
    outcome = order_service.checkout(
        user_id=user_id,
        shipping_address_id=body.shipping_address_id,
        billing_address_id=body.billing_address_id,
        notes=body.notes,
    )
    return OrderPlacedResponse(
        order_id=outcome["order_id"],
        order_number=outcome["order_number"],
        total_amount=outcome["total_amount"],
    )


@order_router.get("", response_model=list[OrderResponse])
async def list_orders(status: str | None = None, x_user_id: str | None = Header(default=None)) -> list[OrderResponse]:
    user_id = _require_user(x_user_id)
    return [_order_response(order) for order in order_service.orders_for_user(user_id, status)]


@order_router.get("/cancellable", response_model=list[OrderResponse])
async def cancellable_orders(x_user_id: str | None = Header(default=None)) -> list[OrderResponse]:
    user_id = _require_user(x_user_id)
    return [_order_response(order) for order in order_service.cancellable_orders(user_id)]


@order_router.get("/refundable", response_model=list[OrderResponse])
async def refundable_orders(x_user_id: str | None = Header(default=None)) -> list[OrderResponse]:
    user_id = _require_user(x_user_id)
    return [_order_response(order) for order in order_service.refundable_orders(user_id)]


@order_router.get("/number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(order_number: str, x_user_id: str | None = Header(default=None)) -> OrderResponse:
    user_id = _require_user(x_user_id)
    order = order_service.get_by_number(order_number)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_number} not found")
    return _order_response(_owned_order(str(order.id), user_id))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, x_user_id: str | None = Header(default=None)) -> OrderResponse:
    user_id = _require_user(x_user_id)
    return _order_response(_owned_order(order_id, user_id))


@order_router.get("/{order_id}/history", response_model=list[StatusHistoryResponse])
async def get_order_history(
    order_id: str, x_user_id: str | None = Header(default=None)
) -> list[StatusHistoryResponse]:
    user_id = _require_user(x_user_id)
    order = _owned_order(order_id, user_id)
    return [
        StatusHistoryResponse(
            previous_status=entry.previous_status,
            new_status=entry.new_status,
            changed_by=str(entry.changed_by) if entry.changed_by else None,
            notes=entry.notes,
            created_at=entry.created_at,
        )
        for entry in order.sorted_history()
    ]


@order_router.post("/{order_id}/cancel", response_model=OrderStatusResponse)
async def cancel_order(
    order_id: str, body: CancelOrderRequest, x_user_id: str | None = Header(default=None)
) -> OrderStatusResponse:
    user_id = _require_user(x_user_id)
    try:
        outcome = order_service.cancel_order(
            order_id,
            reason=body.reason,
            actor_role=ActorRole.CUSTOMER,
            actor_id=user_id,
            refund_payment=body.refund_payment,
        )
    except PermissionDenied as exc:
        raise _forbidden(exc) from exc
    return _status_response(outcome)


# ---------------------------------------------------------------------------
# Admin Order Router
# ---------------------------------------------------------------------------
admin_order_router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


@admin_order_router.get("/attention", response_model=list[OrderResponse])
async def orders_requiring_attention(x_user_role: str | None = Header(default=None)) -> list[OrderResponse]:
    _require_admin(x_user_role)
    return [_order_response(order) for order in order_service.orders_requiring_attention()]


@admin_order_router.put("/{order_id}/status", response_model=OrderStatusResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> OrderStatusResponse:
    _require_admin(x_user_role)
    outcome = order_service.update_status(
        order_id,
        body.status,
        actor_role=ActorRole.ADMIN,
        changed_by=x_user_id,
        notes=body.notes,
        refund_payment=body.refund_payment,
    )
    return _status_response(outcome)


@admin_order_router.post("/{order_id}/cancel", response_model=OrderStatusResponse)
async def admin_cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> OrderStatusResponse:
    _require_admin(x_user_role)
    outcome = order_service.cancel_order(
        order_id,
        reason=body.reason,
        actor_role=ActorRole.ADMIN,
        actor_id=x_user_id,
        refund_payment=body.refund_payment,
    )
    return _status_response(outcome)


@admin_order_router.post("/{order_id}/payment", response_model=StatusResponse)
async def record_payment(order_id: str, x_user_role: str | None = Header(default=None)) -> StatusResponse:
    _require_admin(x_user_role)
    order_service.record_payment(order_id)
    return StatusResponse(status="paid")
