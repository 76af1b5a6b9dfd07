"""Stock reservation — commands and handler.

Reservations are anonymous counters on the record: the order that holds
them keeps track of which quantities it reserved.
"""

from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.inventory.movements import stock_outcome
from commerce.inventory.record import InventoryRecord


@commerce.command(part_of="InventoryRecord")
class ReserveStock:
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@commerce.command(part_of="InventoryRecord")
class ReleaseStock:
    """Return reserved units to available stock (order cancelled)."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@commerce.command(part_of="InventoryRecord")
class ConfirmStock:
    """Consume reserved units (order shipped)."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@commerce.command_handler(part_of=InventoryRecord)
class ReservationHandler:
    @handle(ReserveStock)
    def reserve_stock(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.product_id)
        previous = record.quantity_available
        record.reserve(command.quantity)
        repo.add(record)
        return stock_outcome(record, previous)

    @handle(ReleaseStock)
    def release_stock(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.product_id)
        previous = record.quantity_available
        record.release(command.quantity)
        repo.add(record)
        return stock_outcome(record, previous)

    @handle(ConfirmStock)
    def confirm_stock(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.product_id)
        previous = record.quantity_available
        record.confirm(command.quantity)
        repo.add(record)
        return stock_outcome(record, previous)
