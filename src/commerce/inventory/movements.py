"""Stock movements — initialization, receiving, write-offs and admin overrides."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.inventory.record import DEFAULT_REORDER_LEVEL, InventoryRecord


@commerce.command(part_of="InventoryRecord")
class InitializeStock:
    """Start tracking a product in the ledger."""

    product_id = Identifier(required=True)
    initial_quantity = Integer(default=0)
    reorder_level = Integer(default=DEFAULT_REORDER_LEVEL)


@commerce.command(part_of="InventoryRecord")
class AddStock:
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@commerce.command(part_of="InventoryRecord")
class RemoveStock:
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@commerce.command(part_of="InventoryRecord")
class SetReorderLevel:
    product_id = Identifier(required=True)
    reorder_level = Integer(required=True)


@commerce.command(part_of="InventoryRecord")
class UpdateAvailableQuantity:
    """Administrative override of the available quantity."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True)


def stock_outcome(record, previous_available) -> dict:
    """Summarize a movement for the caller and for notifications."""
    return {
        "product_id": str(record.product_id),
        "previous_available": previous_available,
        "quantity_available": record.quantity_available,
        "quantity_reserved": record.quantity_reserved,
        "reorder_level": record.reorder_level,
        "low_stock": record.quantity_available < previous_available and record.is_low_stock,
    }


@commerce.command_handler(part_of=InventoryRecord)
class StockMovementHandler:
    @handle(InitializeStock)
    def initialize_stock(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        try:
            repo.get(command.product_id)
        except ObjectNotFoundError:
            pass
        else:
            raise ValidationError({"product_id": [f"Inventory already exists for product {command.product_id}"]})

        record = InventoryRecord.create(
            product_id=command.product_id,
            initial_quantity=command.initial_quantity,
            reorder_level=command.reorder_level,
        )
        repo.add(record)
        return stock_outcome(record, 0)

    @handle(AddStock)
    def add_stock(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.product_id)
        previous = record.quantity_available
        record.add_stock(command.quantity)
        repo.add(record)
        return stock_outcome(record, previous)

    @handle(RemoveStock)
    def remove_stock(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.product_id)
        previous = record.quantity_available
        record.remove_stock(command.quantity)
        repo.add(record)
        return stock_outcome(record, previous)

    @handle(SetReorderLevel)
    def set_reorder_level(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.product_id)
        record.set_reorder_level(command.reorder_level)
        repo.add(record)
        return stock_outcome(record, record.quantity_available)

    @handle(UpdateAvailableQuantity)
    def update_available_quantity(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.product_id)
        previous = record.quantity_available
        record.update_available(command.quantity)
        repo.add(record)
        return stock_outcome(record, previous)
