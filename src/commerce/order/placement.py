"""Order placement — commands and handler.

Placing an order reserves every item in the ledger inside the same unit of
work that records the order. If any item cannot be reserved, the
reservations already taken for this order are released again and the error
surfaces; nothing is persisted.
"""

import json
import random
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain

from commerce.cart.cart import ShoppingCart
from commerce.domain import commerce
from commerce.exceptions import DuplicateOrderNumber
from commerce.inventory.availability import validate_availability
from commerce.inventory.movements import stock_outcome
from commerce.inventory.record import InventoryRecord
from commerce.order.order import Order
from commerce.settings import get_settings

logger = structlog.get_logger(__name__)


def generate_order_number(now: datetime | None = None) -> str:
    """``ORD-<yyyyMMddHHmmss>-<3 random digits>``."""
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d%H%M%S}-{random.randint(0, 999):03d}"


def allocate_order_number(repo, generator=None) -> str:
    generator = generator or generate_order_number
    attempts = get_settings().order_number_attempts
    for _ in range(attempts):
        candidate = generator()
        if not repo.order_number_exists(candidate):
            return candidate
    raise DuplicateOrderNumber(attempts)


def _parse_items(raw) -> list[dict]:
    items = json.loads(raw) if isinstance(raw, str) else raw
    if not items:
        raise ValidationError({"items": ["An order needs at least one item"]})

    parsed = []
    for item in items:
        quantity = int(item.get("quantity") or 0)
        if quantity <= 0:
            raise ValidationError({"items": [f"Quantity for product {item.get('product_id')} must be positive"]})
        parsed.append({"product_id": str(item["product_id"]), "quantity": quantity})
    return parsed


@commerce.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity}
    shipping_address_id = Identifier(required=True)
    billing_address_id = Identifier()  # Defaults to the shipping address
    notes = Text()


@commerce.command(part_of="Order")
class PlaceOrderFromCart:
    """Check out the user's cart; the cart is emptied once the order exists."""

    user_id = Identifier(required=True)
    shipping_address_id = Identifier(required=True)
    billing_address_id = Identifier()
    notes = Text()


@commerce.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        return _place(
            user_id=command.user_id,
            items=_parse_items(command.items),
            shipping_address_id=command.shipping_address_id,
            billing_address_id=command.billing_address_id,
            notes=command.notes,
        )

    @handle(PlaceOrderFromCart)
    def place_order_from_cart(self, command):
        cart_repo = current_domain.repository_for(ShoppingCart)
        cart = cart_repo.for_owner(user_id=command.user_id)
        if cart is None or not cart.items:
            raise ValidationError({"cart": ["Cannot place an order from an empty cart"]})

        items = [{"product_id": str(line.product_id), "quantity": line.quantity} for line in cart.items]
        outcome = _place(
            user_id=command.user_id,
            items=items,
            shipping_address_id=command.shipping_address_id,
            billing_address_id=command.billing_address_id,
            notes=command.notes,
        )

        cart.clear()
        cart_repo.add(cart)
        return outcome


def _place(user_id, items, shipping_address_id, billing_address_id=None, notes=None) -> dict:
    settings = get_settings()
    inventory_repo = current_domain.repository_for(InventoryRecord)
    order_repo = current_domain.repository_for(Order)

    records: dict[str, InventoryRecord] = {}
    previous_available: dict[str, int] = {}
    reserved: list[tuple[InventoryRecord, int]] = []
    lines = []

    try:
        for item in items:
            product_id = item["product_id"]
            record = records.get(product_id)
            if record is None:
                record = records[product_id] = inventory_repo.get(product_id)
                previous_available[product_id] = record.quantity_available

            product = validate_availability(product_id, item["quantity"], record=record)
            record.reserve(item["quantity"])
            reserved.append((record, item["quantity"]))
            lines.append(
                {
                    "product_id": product_id,
                    "product_sku": product.sku,
                    "product_name": product.name,
                    "unit_price": product.price,
                    "quantity": item["quantity"],
                }
            )
    except (ValidationError, ObjectNotFoundError) as exc:
        for record, quantity in reversed(reserved):
            record.release(quantity)
        logger.warning(
            "Order placement failed, reservations released",
            user_id=str(user_id),
            released=len(reserved),
            error=str(exc),
        )
        raise

    subtotal = round(sum(line["unit_price"] * line["quantity"] for line in lines), 2)
    order = Order.place(
        order_number=allocate_order_number(order_repo),
        user_id=user_id,
        lines=lines,
        subtotal=subtotal,
        tax_amount=settings.tax_for(subtotal),
        shipping_amount=settings.shipping_for(subtotal),
        shipping_address_id=shipping_address_id,
        billing_address_id=billing_address_id,
        notes=notes,
        currency=settings.currency,
    )

    for record in records.values():
        inventory_repo.add(record)
    order_repo.add(order)

    logger.info(
        "Order placed",
        order_id=str(order.id),
        order_number=order.order_number,
        user_id=str(user_id),
        total_amount=order.total_amount,
    )
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "user_id": str(user_id),
        "total_amount": order.total_amount,
        "stock": [stock_outcome(records[pid], previous_available[pid]) for pid in records],
    }
