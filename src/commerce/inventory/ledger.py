"""InventoryLedger — the entry point for every stock movement.

Each call holds the product's lock across command processing, so the
validate-then-mutate sequence and the unit-of-work commit for one product
never interleave inside this process. Notifications go out after commit.
"""

import structlog
from protean.utils.globals import current_domain

from commerce.catalogue import get_catalogue
from commerce.inventory.availability import validate_availability
from commerce.inventory.movements import (
    AddStock,
    InitializeStock,
    RemoveStock,
    SetReorderLevel,
    UpdateAvailableQuantity,
)
from commerce.inventory.record import DEFAULT_REORDER_LEVEL, InventoryRecord
from commerce.inventory.reservation import ConfirmStock, ReleaseStock, ReserveStock
from commerce.utils.locking import product_locks
from notifications.producers import notify_inventory_change, notify_low_stock

logger = structlog.get_logger(__name__)


def product_name(product_id) -> str:
    product = get_catalogue().get_product(str(product_id))
    return product.name if product else str(product_id)


def publish_stock_change(outcome: dict) -> None:
    """Fan a committed movement out to admins (and to users when stock runs short)."""
    name = product_name(outcome["product_id"])
    if outcome["previous_available"] != outcome["quantity_available"]:
        notify_inventory_change(
            outcome["product_id"],
            name,
            outcome["previous_available"],
            outcome["quantity_available"],
        )
    if outcome["low_stock"]:
        notify_low_stock(
            outcome["product_id"],
            name,
            outcome["quantity_available"],
            outcome["reorder_level"],
        )


class InventoryLedger:
    def _run(self, product_id, command) -> dict:
        with product_locks.hold(str(product_id)):
            outcome = current_domain.process(command, asynchronous=False)

        logger.info(
            "Inventory updated",
            command=command.__class__.__name__,
            product_id=str(product_id),
            available=outcome["quantity_available"],
            reserved=outcome["quantity_reserved"],
        )
        publish_stock_change(outcome)
        return outcome

    # -------------------------------------------------------------------
    # Movements
    # -------------------------------------------------------------------
    def initialize(self, product_id, initial_quantity=0, reorder_level=DEFAULT_REORDER_LEVEL) -> dict:
        return self._run(
            product_id,
            InitializeStock(
                product_id=str(product_id),
                initial_quantity=initial_quantity,
                reorder_level=reorder_level,
            ),
        )

    def add_stock(self, product_id, quantity) -> dict:
        return self._run(product_id, AddStock(product_id=str(product_id), quantity=quantity))

    def remove_stock(self, product_id, quantity) -> dict:
        return self._run(product_id, RemoveStock(product_id=str(product_id), quantity=quantity))

    def reserve(self, product_id, quantity) -> dict:
        return self._run(product_id, ReserveStock(product_id=str(product_id), quantity=quantity))

    def release(self, product_id, quantity) -> dict:
        return self._run(product_id, ReleaseStock(product_id=str(product_id), quantity=quantity))

    def confirm(self, product_id, quantity) -> dict:
        return self._run(product_id, ConfirmStock(product_id=str(product_id), quantity=quantity))

    def set_reorder_level(self, product_id, level) -> dict:
        return self._run(product_id, SetReorderLevel(product_id=str(product_id), reorder_level=level))

    def update_available(self, product_id, quantity) -> dict:
        return self._run(product_id, UpdateAvailableQuantity(product_id=str(product_id), quantity=quantity))

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get(self, product_id) -> InventoryRecord:
        return current_domain.repository_for(InventoryRecord).get(str(product_id))

    def validate_availability(self, product_id, quantity):
        return validate_availability(product_id, quantity)

    def low_stock(self) -> list[InventoryRecord]:
        return current_domain.repository_for(InventoryRecord).low_stock()

    def out_of_stock(self) -> list[InventoryRecord]:
        return current_domain.repository_for(InventoryRecord).out_of_stock()

    def statistics(self) -> dict:
        """Counts of low and out-of-stock products, and the value of available stock."""
        records = current_domain.repository_for(InventoryRecord).all_records()
        catalogue = get_catalogue()

        total_value = 0.0
        for record in records:
            product = catalogue.get_product(str(record.product_id))
            if product is not None:
                total_value += product.price * record.quantity_available

        return {
            "total_products": len(records),
            "low_stock_count": sum(1 for record in records if record.is_low_stock),
            "out_of_stock_count": sum(1 for record in records if not record.is_in_stock),
            "total_inventory_value": round(total_value, 2),
        }


inventory_ledger = InventoryLedger()
