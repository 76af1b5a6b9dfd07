"""Shopping Cart aggregate — the lines a visitor intends to buy.

A cart belongs to exactly one owner: a signed-in user or an anonymous
session. Each product appears on at most one line. The aggregate only keeps
the lines consistent; availability checks happen in the command handlers,
which can see the inventory ledger.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from commerce.cart.events import (
    CartCleared,
    CartItemAdded,
    CartItemQuantityUpdated,
    CartItemRemoved,
    GuestCartTransferred,
)
from commerce.domain import commerce
from commerce.exceptions import NotFound


@commerce.entity(part_of="ShoppingCart")
class CartLine:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    created_at = DateTime()
    updated_at = DateTime()


@commerce.aggregate
class ShoppingCart:
    user_id = Identifier()  # Set for signed-in shoppers
    session_id = String(max_length=255)  # Set for anonymous visitors
    items = HasMany(CartLine)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_must_have_exactly_one_owner(self):
        if bool(self.user_id) == bool(self.session_id):
            raise ValidationError({"owner": ["A cart belongs to either a user or a session, not both"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id=None, session_id=None):
        now = datetime.now(UTC)
        return cls(
            user_id=user_id,
            session_id=session_id,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def line_for(self, product_id) -> CartLine | None:
        return next((line for line in self.items if str(line.product_id) == str(product_id)), None)

    def quantity_of(self, product_id) -> int:
        line = self.line_for(product_id)
        return line.quantity if line else 0

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    def _require_line(self, product_id) -> CartLine:
        line = self.line_for(product_id)
        if line is None:
            raise NotFound(f"Product {product_id} is not in the cart")
        return line

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity):
        """Add ``quantity`` units of a product, creating the line if needed."""
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        now = datetime.now(UTC)
        line = self.line_for(product_id)
        if line:
            line.quantity += quantity
            line.updated_at = now
            new_quantity = line.quantity
        else:
            self.add_items(CartLine(product_id=product_id, quantity=quantity, created_at=now, updated_at=now))
            new_quantity = quantity

        self.updated_at = now
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                product_id=str(product_id),
                quantity_added=quantity,
                new_quantity=new_quantity,
            )
        )

    def update_item_quantity(self, product_id, quantity):
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        line = self._require_line(product_id)
        previous = line.quantity
        now = datetime.now(UTC)
        line.quantity = quantity
        line.updated_at = now
        self.updated_at = now

        self.raise_(
            CartItemQuantityUpdated(
                cart_id=str(self.id),
                product_id=str(product_id),
                previous_quantity=previous,
                new_quantity=quantity,
            )
        )

    def remove_item(self, product_id):
        line = self._require_line(product_id)
        self.remove_items(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartItemRemoved(cart_id=str(self.id), product_id=str(product_id)))

    def clear(self):
        removed = len(self.items)
        for line in list(self.items):
            self.remove_items(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartCleared(cart_id=str(self.id), items_removed=removed))

    # -------------------------------------------------------------------
    # Guest → user transfer
    # -------------------------------------------------------------------
    def absorb_guest_lines(self, guest_lines, session_id, accepted_quantities):
        """Merge lines from an anonymous cart into this user's cart.

        Args:
            guest_lines: (product_id, quantity) pairs from the session cart.
            session_id: The session the lines came from.
            accepted_quantities: product_id -> combined quantity that passed
                validation. Products present in both carts but missing here
                keep this cart's quantity.
        """
        now = datetime.now(UTC)
        merged = kept = 0

        for product_id, quantity in guest_lines:
            line = self.line_for(product_id)
            if line is None:
                self.add_items(CartLine(product_id=product_id, quantity=quantity, created_at=now, updated_at=now))
                merged += 1
            elif str(product_id) in accepted_quantities:
                line.quantity = accepted_quantities[str(product_id)]
                line.updated_at = now
                merged += 1
            else:
                kept += 1

        self.updated_at = now
        self.raise_(
            GuestCartTransferred(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                source_session_id=session_id,
                items_merged=merged,
                items_kept=kept,
            )
        )
