"""Domain events for the InventoryRecord aggregate.

Every ledger movement is recorded with the counter values before and after
the change, so downstream consumers never need to re-read the record.
"""

from protean.fields import DateTime, Identifier, Integer

from commerce.domain import commerce


@commerce.event(part_of="InventoryRecord")
class StockInitialized:
    """A product started being tracked by the ledger."""

    product_id = Identifier(required=True)
    initial_quantity = Integer(required=True)
    reorder_level = Integer(required=True)
    initialized_at = DateTime(required=True)


@commerce.event(part_of="InventoryRecord")
class StockAdded:
    """Stock was added, increasing the available quantity."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_available = Integer(required=True)
    new_available = Integer(required=True)
    added_at = DateTime(required=True)


@commerce.event(part_of="InventoryRecord")
class StockRemoved:
    """Stock was removed outright (damage, shrinkage, manual write-off)."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_available = Integer(required=True)
    new_available = Integer(required=True)
    removed_at = DateTime(required=True)


@commerce.event(part_of="InventoryRecord")
class StockReserved:
    """Available stock was moved into the reserved bucket."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_available = Integer(required=True)
    new_available = Integer(required=True)
    new_reserved = Integer(required=True)
    reserved_at = DateTime(required=True)


@commerce.event(part_of="InventoryRecord")
class ReservationReleased:
    """Reserved stock went back to available."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_available = Integer(required=True)
    new_available = Integer(required=True)
    new_reserved = Integer(required=True)
    released_at = DateTime(required=True)


@commerce.event(part_of="InventoryRecord")
class ReservationConfirmed:
    """Reserved stock left the ledger because the goods shipped."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_reserved = Integer(required=True)
    new_reserved = Integer(required=True)
    confirmed_at = DateTime(required=True)


@commerce.event(part_of="InventoryRecord")
class ReorderLevelChanged:
    product_id = Identifier(required=True)
    previous_level = Integer(required=True)
    new_level = Integer(required=True)
    changed_at = DateTime(required=True)


@commerce.event(part_of="InventoryRecord")
class AvailableQuantityOverridden:
    """An administrator set the available quantity directly."""

    product_id = Identifier(required=True)
    previous_available = Integer(required=True)
    new_available = Integer(required=True)
    overridden_at = DateTime(required=True)


@commerce.event(part_of="InventoryRecord")
class LowStockDetected:
    """Available stock fell to or below the reorder level."""

    product_id = Identifier(required=True)
    current_available = Integer(required=True)
    reorder_level = Integer(required=True)
    detected_at = DateTime(required=True)
