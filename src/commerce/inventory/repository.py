"""Repository for the InventoryRecord aggregate."""

from commerce.domain import commerce
from commerce.inventory.record import InventoryRecord


@commerce.repository(part_of=InventoryRecord)
class InventoryRecordRepository:
    def all_records(self) -> list[InventoryRecord]:
        return self._dao.query.all().items

    def out_of_stock(self) -> list[InventoryRecord]:
        return self._dao.query.filter(quantity_available=0).all().items

    def low_stock(self) -> list[InventoryRecord]:
        """Records at or below their own reorder level, including out-of-stock ones."""
        return [record for record in self.all_records() if record.is_low_stock]
