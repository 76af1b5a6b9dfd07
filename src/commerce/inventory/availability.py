"""Availability checks shared by carts and order placement."""

from protean.utils.globals import current_domain

from commerce.catalogue import ProductSnapshot, get_catalogue
from commerce.exceptions import InsufficientStock, NotFound, OutOfStock, ProductUnavailable
from commerce.inventory.record import InventoryRecord


def validate_availability(product_id, quantity, record: InventoryRecord | None = None) -> ProductSnapshot:
    """Check that ``quantity`` units of the product can be sold right now.

    Raises, in this order: NotFound, ProductUnavailable, OutOfStock,
    InsufficientStock. Returns the catalogue snapshot on success.
    """
    product = get_catalogue().get_product(str(product_id))
    if product is None:
        raise NotFound(f"Product {product_id} does not exist")
    if not product.is_active:
        raise ProductUnavailable(product_id)

    if record is None:
        record = current_domain.repository_for(InventoryRecord).get(str(product_id))
    if not record.is_in_stock:
        raise OutOfStock(product_id)
    if quantity > record.quantity_available:
        raise InsufficientStock(product_id, record.quantity_available, quantity)

    return product
