"""Order aggregate — the order lifecycle state machine.

State Machine (7 states):
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED → REFUNDED
    CANCELLED (from PENDING, CONFIRMED, PROCESSING, SHIPPED) → REFUNDED

Administrators and the system may take any edge of the table. Customers may
only cancel their own orders while they are PENDING or CONFIRMED.

Each item remembers whether its inventory is still held (RESERVED), has
left the warehouse (CONFIRMED, on shipping) or went back to stock
(RELEASED, on cancellation). Status history is append-only.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text

from commerce.domain import commerce
from commerce.exceptions import InvalidStatusTransition, PermissionDenied
from commerce.order.events import OrderPlaced, OrderStatusChanged, PaymentStatusChanged


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"

    @classmethod
    def parse(cls, value) -> "OrderStatus":
        """Accept either the value ("Shipped") or the name ("SHIPPED"), any case."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for status in cls:
            if text in (status.value.lower(), status.name.lower()):
                return status
        raise ValidationError({"status": [f"Unknown order status: {value}"]})


class PaymentStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    REFUNDED = "Refunded"


class ReservationState(Enum):
    RESERVED = "Reserved"
    CONFIRMED = "Confirmed"
    RELEASED = "Released"


class ActorRole(Enum):
    CUSTOMER = "Customer"
    ADMIN = "Admin"
    SYSTEM = "System"


# Full transition table, used by administrators and the system
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # Terminal
}

# Self-service customers can only cancel, and only before processing starts
_CUSTOMER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.CANCELLED},
}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}


def allowed_transitions(status: OrderStatus, role: ActorRole = ActorRole.ADMIN) -> set[OrderStatus]:
    table = _CUSTOMER_TRANSITIONS if role == ActorRole.CUSTOMER else _VALID_TRANSITIONS
    return set(table.get(status, set()))


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@commerce.entity(part_of="Order")
class OrderItem:
    """A line of the order, frozen at the catalogue values seen at checkout."""

    product_id = Identifier(required=True)
    product_sku = String(max_length=100)
    product_name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    total_price = Float(required=True, min_value=0.0)
    reservation_status = String(choices=ReservationState, default=ReservationState.RESERVED.value)


@commerce.entity(part_of="Order")
class StatusHistoryEntry:
    sequence = Integer(required=True, min_value=0)
    previous_status = String(max_length=20)  # None for the creation entry
    new_status = String(required=True, max_length=20)
    changed_by = Identifier()  # None when the system made the change
    notes = Text()
    created_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@commerce.aggregate
class Order:
    order_number = String(required=True, max_length=50)
    user_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    subtotal = Float(default=0.0, min_value=0.0)
    tax_amount = Float(default=0.0, min_value=0.0)
    shipping_amount = Float(default=0.0, min_value=0.0)
    total_amount = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="USD")
    shipping_address_id = Identifier(required=True)
    billing_address_id = Identifier(required=True)
    notes = Text()
    items = HasMany(OrderItem)
    history = HasMany(StatusHistoryEntry)
    refund_requested = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()
    status_changed_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        user_id,
        lines,
        subtotal,
        tax_amount,
        shipping_amount,
        shipping_address_id,
        billing_address_id=None,
        notes=None,
        currency="USD",
    ):
        """Create a PENDING order whose items are already reserved.

        Args:
            lines: dicts with product_id, product_sku, product_name,
                unit_price and quantity.
        """
        if not lines:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            subtotal=subtotal,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            total_amount=round(subtotal + tax_amount + shipping_amount, 2),
            currency=currency,
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id or shipping_address_id,
            notes=notes,
            created_at=now,
            updated_at=now,
            status_changed_at=now,
        )

        for line in lines:
            order.add_items(
                OrderItem(
                    product_id=line["product_id"],
                    product_sku=line.get("product_sku"),
                    product_name=line["product_name"],
                    unit_price=line["unit_price"],
                    quantity=line["quantity"],
                    total_price=round(line["unit_price"] * line["quantity"], 2),
                    reservation_status=ReservationState.RESERVED.value,
                )
            )

        order._append_history(None, OrderStatus.PENDING, changed_by=user_id, notes="Order created", at=now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id),
                item_count=sum(line["quantity"] for line in lines),
                total_amount=order.total_amount,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------
    @property
    def can_be_cancelled(self) -> bool:
        return OrderStatus(self.status) in _CANCELLABLE_STATES

    @property
    def can_be_refunded(self) -> bool:
        return self.status == OrderStatus.DELIVERED.value and self.payment_status == PaymentStatus.PAID.value

    def sorted_history(self) -> list:
        """Status history in the order it was appended."""
        return sorted(self.history, key=lambda entry: entry.sequence)

    def held_items(self) -> list:
        """Items whose inventory is still reserved in the ledger."""
        return [item for item in self.items if item.reservation_status == ReservationState.RESERVED.value]

    # -------------------------------------------------------------------
    # Transition checks
    # -------------------------------------------------------------------
    def check_transition(self, target, actor_role=ActorRole.ADMIN, actor_id=None):
        """Raise unless ``actor_role`` may move this order to ``target``.

        InvalidStatusTransition when the edge does not exist at all,
        PermissionDenied when it exists but not for this actor.
        """
        current = OrderStatus(self.status)
        target = OrderStatus.parse(target)
        role = ActorRole(actor_role) if not isinstance(actor_role, ActorRole) else actor_role

        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStatusTransition(current.value, target.value)

        if role == ActorRole.CUSTOMER:
            if actor_id is None or str(actor_id) != str(self.user_id):
                raise PermissionDenied("Customers can only change their own orders")
            if target not in _CUSTOMER_TRANSITIONS.get(current, set()):
                raise PermissionDenied(f"Customers cannot move an order from {current.value} to {target.value}")

        return target

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def transition_to(self, target, changed_by=None, notes=None, refund_payment=False):
        """Move to ``target``, updating item reservations, payment and history.

        Callers run ``check_transition`` first for the actor's permissions;
        the full table is enforced here regardless.
        """
        current = OrderStatus(self.status)
        target = OrderStatus.parse(target)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStatusTransition(current.value, target.value)

        now = datetime.now(UTC)

        if target == OrderStatus.CANCELLED:
            for item in self.held_items():
                item.reservation_status = ReservationState.RELEASED.value
            self.refund_requested = bool(refund_payment)
            if refund_payment and self.payment_status == PaymentStatus.PAID.value:
                self._set_payment_status(PaymentStatus.REFUNDED, now)
        elif target == OrderStatus.SHIPPED:
            for item in self.held_items():
                item.reservation_status = ReservationState.CONFIRMED.value
        elif target == OrderStatus.REFUNDED:
            self._set_payment_status(PaymentStatus.REFUNDED, now)

        self.status = target.value
        self.status_changed_at = now
        self.updated_at = now
        self._append_history(current, target, changed_by=changed_by, notes=notes, at=now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                user_id=str(self.user_id),
                previous_status=current.value,
                new_status=target.value,
                changed_by=str(changed_by) if changed_by is not None else None,
                changed_at=now,
            )
        )

    def record_payment(self):
        """Mark the order as paid."""
        if self.payment_status != PaymentStatus.PENDING.value:
            raise ValidationError({"payment_status": [f"Cannot record payment for a {self.payment_status} order"]})
        if self.status in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value):
            raise ValidationError({"status": [f"Cannot record payment for a {self.status} order"]})

        now = datetime.now(UTC)
        self._set_payment_status(PaymentStatus.PAID, now)
        self.updated_at = now

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _set_payment_status(self, status: PaymentStatus, at):
        previous = self.payment_status
        if previous == status.value:
            return
        self.payment_status = status.value
        self.raise_(
            PaymentStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=status.value,
                changed_at=at,
            )
        )

    def _append_history(self, previous, new, changed_by, notes, at):
        self.add_history(
            StatusHistoryEntry(
                sequence=len(self.history),
                previous_status=previous.value if previous else None,
                new_status=new.value,
                changed_by=str(changed_by) if changed_by is not None else None,
                notes=notes,
                created_at=at,
            )
        )
