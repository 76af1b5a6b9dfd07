"""Notification producers — turn business outcomes into fan-out messages.

Called after the business transaction has committed. Producers never raise:
a notification failure must not undo an order or a stock movement.
"""

import structlog

from notifications.fanout import get_registry

logger = structlog.get_logger(__name__)

LOW_INVENTORY_BROADCAST_LEVEL = 5

_ADMIN_STATUS_CHANGES = {"shipped", "cancelled", "refunded"}

_STATUS_MESSAGES = {
    "confirmed": "Your order {order_number} has been confirmed and is being processed.",
    "processing": "Your order {order_number} is currently being prepared for shipment.",
    "shipped": "Great news! Your order {order_number} has been shipped and is on its way.",
    "delivered": "Your order {order_number} has been delivered. Thank you for your purchase!",
    "cancelled": (
        "Your order {order_number} has been cancelled. If you have any questions, please contact support."
    ),
    "refunded": (
        "Your order {order_number} has been refunded. "
        "The refund will appear in your account within 3-5 business days."
    ),
}


def order_status_message(status: str, order_number: str) -> str:
    template = _STATUS_MESSAGES.get(status.lower())
    if template is None:
        return f"Your order {order_number} status has been updated to: {status}"
    return template.format(order_number=order_number)


def _safely(description: str, send, **context) -> int:
    try:
        return send()
    except Exception as e:
        logger.error(f"Failed to publish {description}", error=str(e), **context)
        return 0


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
def notify_order_status_change(user_id, order_number, old_status, new_status) -> None:
    """Tell the customer, and for shipped/cancelled/refunded orders the admins too."""
    registry = get_registry()
    message = order_status_message(new_status, order_number)

    _safely(
        "order status update",
        lambda: registry.publish_to_user(
            user_id,
            "order_status_update",
            {"order_number": order_number, "status": new_status, "message": message},
        ),
        order_number=order_number,
    )

    if new_status.lower() in _ADMIN_STATUS_CHANGES:
        _safely(
            "admin order status change",
            lambda: registry.publish_to_admins(
                "order_status_change",
                {
                    "user_id": str(user_id),
                    "order_number": order_number,
                    "old_status": old_status,
                    "new_status": new_status,
                },
            ),
            order_number=order_number,
        )


def notify_new_order(user_id, order_number, total_amount) -> None:
    registry = get_registry()
    _safely(
        "order confirmation",
        lambda: registry.publish_to_user(
            user_id,
            "order_status_update",
            {
                "order_number": order_number,
                "status": "Confirmed",
                "message": "Your order has been confirmed and is being processed.",
            },
        ),
        order_number=order_number,
    )
    _safely(
        "new order alert",
        lambda: registry.publish_to_admins(
            "new_order",
            {
                "user_id": str(user_id),
                "order_number": order_number,
                "total_amount": total_amount,
                "message": f"New order received: {order_number}",
            },
        ),
        order_number=order_number,
    )


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
def notify_inventory_change(product_id, product_name, old_quantity, new_quantity) -> None:
    """Admins see every movement; users hear about stock running out."""
    registry = get_registry()
    _safely(
        "inventory change",
        lambda: registry.publish_to_admins(
            "inventory_change",
            {
                "product_id": str(product_id),
                "product_name": product_name,
                "old_quantity": old_quantity,
                "new_quantity": new_quantity,
            },
        ),
        product_id=str(product_id),
    )

    if new_quantity < old_quantity and new_quantity <= LOW_INVENTORY_BROADCAST_LEVEL:
        _safely(
            "low inventory broadcast",
            lambda: registry.broadcast(
                "low_inventory",
                {
                    "product_id": str(product_id),
                    "product_name": product_name,
                    "available_quantity": new_quantity,
                    "message": f"Limited stock available for {product_name}",
                },
            ),
            product_id=str(product_id),
        )


def notify_low_stock(product_id, product_name, current_quantity, reorder_level) -> None:
    registry = get_registry()
    _safely(
        "low stock alert",
        lambda: registry.publish_to_admins(
            "low_stock_alert",
            {
                "product_id": str(product_id),
                "product_name": product_name,
                "current_quantity": current_quantity,
                "reorder_level": reorder_level,
                "message": f"Low stock alert: {product_name} has only {current_quantity} units left",
                "priority": "high",
            },
        ),
        product_id=str(product_id),
    )


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------
def notify_cart_update(user_id, cart_data: dict, action: str) -> None:
    """Keep the user's other open tabs and devices in sync with their cart."""
    registry = get_registry()
    _safely(
        "cart update",
        lambda: registry.publish_to_user(user_id, "cart_update", {"action": action, "cart": cart_data}),
        user_id=str(user_id),
    )


def send_test_notification(message: str) -> int:
    registry = get_registry()
    return _safely(
        "test notification",
        lambda: registry.broadcast("test_notification", {"message": message, "type": "integration_test"}),
    )
