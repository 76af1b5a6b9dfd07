"""Order status changes, cancellation and payment — commands and handler.

Stock follows the order: cancelling releases what is still reserved,
shipping confirms it. The ledger updates and the order update commit
together.
"""

from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.inventory.movements import stock_outcome
from commerce.inventory.record import InventoryRecord
from commerce.order.order import ActorRole, Order, OrderStatus


@commerce.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    new_status = String(required=True, max_length=20)
    actor_role = String(choices=ActorRole, default=ActorRole.ADMIN.value)
    changed_by = Identifier()  # None for system changes
    notes = Text()
    refund_payment = Boolean(default=False)


@commerce.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = Text()
    actor_role = String(choices=ActorRole, default=ActorRole.CUSTOMER.value)
    cancelled_by = Identifier()
    refund_payment = Boolean(default=False)


@commerce.command(part_of="Order")
class RecordPayment:
    order_id = Identifier(required=True)


def _apply_stock_moves(order, target) -> list[dict]:
    """Release or confirm the order's held reservations in the ledger."""
    if target not in (OrderStatus.CANCELLED, OrderStatus.SHIPPED):
        return []

    inventory_repo = current_domain.repository_for(InventoryRecord)
    records: dict[str, InventoryRecord] = {}
    previous_available: dict[str, int] = {}

    for item in order.held_items():
        product_id = str(item.product_id)
        record = records.get(product_id)
        if record is None:
            record = records[product_id] = inventory_repo.get(product_id)
            previous_available[product_id] = record.quantity_available

        if target == OrderStatus.CANCELLED:
            record.release(item.quantity)
        else:
            record.confirm(item.quantity)

    for record in records.values():
        inventory_repo.add(record)
    return [stock_outcome(records[pid], previous_available[pid]) for pid in records]


def _change_status(order_id, new_status, actor_role, actor_id, changed_by, notes, refund_payment) -> dict:
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    previous = order.status

    target = order.check_transition(new_status, actor_role=actor_role, actor_id=actor_id)
    stock = _apply_stock_moves(order, target)
    order.transition_to(target, changed_by=changed_by, notes=notes, refund_payment=refund_payment)
    repo.add(order)

    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "user_id": str(order.user_id),
        "previous_status": previous,
        "new_status": order.status,
        "payment_status": order.payment_status,
        "stock": stock,
    }


@commerce.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        return _change_status(
            command.order_id,
            command.new_status,
            actor_role=command.actor_role,
            actor_id=command.changed_by,
            changed_by=command.changed_by,
            notes=command.notes,
            refund_payment=command.refund_payment,
        )

    @handle(CancelOrder)
    def cancel_order(self, command):
        return _change_status(
            command.order_id,
            OrderStatus.CANCELLED,
            actor_role=command.actor_role,
            actor_id=command.cancelled_by,
            changed_by=command.cancelled_by,
            notes=command.reason or "Order cancelled",
            refund_payment=command.refund_payment,
        )

    @handle(RecordPayment)
    def record_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_payment()
        repo.add(order)
        return {"order_id": str(order.id), "payment_status": order.payment_status}
