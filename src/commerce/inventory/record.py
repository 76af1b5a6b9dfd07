"""InventoryRecord aggregate — the stock ledger for one product.

Stock Level Model:
    quantity_available:  can be sold or reserved right now
    quantity_reserved:   held for placed orders that have not shipped yet
    total_quantity:      available + reserved (physically in the warehouse)

Every operation validates before touching a counter, so a rejected call
leaves the record exactly as it was. Neither counter can go negative.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer

from commerce.domain import commerce
from commerce.exceptions import InsufficientStock, InvalidReservation
from commerce.inventory.events import (
    AvailableQuantityOverridden,
    LowStockDetected,
    ReorderLevelChanged,
    ReservationConfirmed,
    ReservationReleased,
    StockAdded,
    StockInitialized,
    StockRemoved,
    StockReserved,
)

DEFAULT_REORDER_LEVEL = 10


def _require_positive(quantity):
    if quantity is None or quantity <= 0:
        raise ValidationError({"quantity": ["Quantity must be positive"]})


@commerce.aggregate
class InventoryRecord:
    product_id = Identifier(identifier=True, required=True)
    quantity_available = Integer(default=0, min_value=0)
    quantity_reserved = Integer(default=0, min_value=0)
    reorder_level = Integer(default=DEFAULT_REORDER_LEVEL, min_value=0)
    last_updated = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, product_id, initial_quantity=0, reorder_level=DEFAULT_REORDER_LEVEL):
        if initial_quantity is None or initial_quantity < 0:
            raise ValidationError({"initial_quantity": ["Initial quantity cannot be negative"]})
        if reorder_level is None or reorder_level < 0:
            raise ValidationError({"reorder_level": ["Reorder level cannot be negative"]})

        now = datetime.now(UTC)
        record = cls(
            product_id=str(product_id),
            quantity_available=initial_quantity,
            quantity_reserved=0,
            reorder_level=reorder_level,
            last_updated=now,
        )
        record.raise_(
            StockInitialized(
                product_id=str(product_id),
                initial_quantity=initial_quantity,
                reorder_level=reorder_level,
                initialized_at=now,
            )
        )
        return record

    # -------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------
    @property
    def is_in_stock(self) -> bool:
        return self.quantity_available > 0

    @property
    def is_low_stock(self) -> bool:
        return self.quantity_available <= self.reorder_level

    @property
    def total_quantity(self) -> int:
        return self.quantity_available + self.quantity_reserved

    def _touch(self):
        now = datetime.now(UTC)
        self.last_updated = now
        return now

    def _check_low_stock(self, detected_at):
        """Raise LowStockDetected if available is at or below the reorder level."""
        if self.is_low_stock:
            self.raise_(
                LowStockDetected(
                    product_id=str(self.product_id),
                    current_available=self.quantity_available,
                    reorder_level=self.reorder_level,
                    detected_at=detected_at,
                )
            )

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def add_stock(self, quantity):
        """Receive ``quantity`` new units into available stock."""
        _require_positive(quantity)

        previous = self.quantity_available
        self.quantity_available = previous + quantity
        now = self._touch()

        self.raise_(
            StockAdded(
                product_id=str(self.product_id),
                quantity=quantity,
                previous_available=previous,
                new_available=self.quantity_available,
                added_at=now,
            )
        )

    def remove_stock(self, quantity):
        """Take ``quantity`` units out of available stock for good."""
        _require_positive(quantity)
        if quantity > self.quantity_available:
            raise InsufficientStock(self.product_id, self.quantity_available, quantity)

        previous = self.quantity_available
        self.quantity_available = previous - quantity
        now = self._touch()

        self.raise_(
            StockRemoved(
                product_id=str(self.product_id),
                quantity=quantity,
                previous_available=previous,
                new_available=self.quantity_available,
                removed_at=now,
            )
        )
        self._check_low_stock(now)

    def reserve(self, quantity):
        """Hold ``quantity`` units for an order."""
        _require_positive(quantity)
        if quantity > self.quantity_available:
            raise InsufficientStock(self.product_id, self.quantity_available, quantity)

        previous = self.quantity_available
        self.quantity_available = previous - quantity
        self.quantity_reserved += quantity
        now = self._touch()

        self.raise_(
            StockReserved(
                product_id=str(self.product_id),
                quantity=quantity,
                previous_available=previous,
                new_available=self.quantity_available,
                new_reserved=self.quantity_reserved,
                reserved_at=now,
            )
        )
        self._check_low_stock(now)

    def release(self, quantity):
        """Return ``quantity`` reserved units to available stock."""
        _require_positive(quantity)
        if quantity > self.quantity_reserved:
            raise InvalidReservation(self.product_id, self.quantity_reserved, quantity, action="release")

        previous = self.quantity_available
        self.quantity_reserved -= quantity
        self.quantity_available = previous + quantity
        now = self._touch()

        self.raise_(
            ReservationReleased(
                product_id=str(self.product_id),
                quantity=quantity,
                previous_available=previous,
                new_available=self.quantity_available,
                new_reserved=self.quantity_reserved,
                released_at=now,
            )
        )

    def confirm(self, quantity):
        """Consume ``quantity`` reserved units; the goods have left the warehouse."""
        _require_positive(quantity)
        if quantity > self.quantity_reserved:
            raise InvalidReservation(self.product_id, self.quantity_reserved, quantity, action="confirm")

        previous = self.quantity_reserved
        self.quantity_reserved = previous - quantity
        now = self._touch()

        self.raise_(
            ReservationConfirmed(
                product_id=str(self.product_id),
                quantity=quantity,
                previous_reserved=previous,
                new_reserved=self.quantity_reserved,
                confirmed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def set_reorder_level(self, level):
        if level is None or level < 0:
            raise ValidationError({"reorder_level": ["Reorder level cannot be negative"]})

        previous = self.reorder_level
        self.reorder_level = level
        now = self._touch()

        self.raise_(
            ReorderLevelChanged(
                product_id=str(self.product_id),
                previous_level=previous,
                new_level=level,
                changed_at=now,
            )
        )

    def update_available(self, quantity):
        """Overwrite the available quantity. Reserved stock is left untouched."""
        if quantity is None or quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})

        previous = self.quantity_available
        self.quantity_available = quantity
        now = self._touch()

        self.raise_(
            AvailableQuantityOverridden(
                product_id=str(self.product_id),
                previous_available=previous,
                new_available=quantity,
                overridden_at=now,
            )
        )
        if quantity < previous:
            self._check_low_stock(now)
