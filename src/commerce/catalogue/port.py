"""Catalogue lookup port.

The catalogue itself (products, categories, images) lives in another
service. Inventory, carts and orders only need a read-only snapshot of a
product's identity, price and active flag.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProductSnapshot:
    product_id: str
    sku: str
    name: str
    price: float
    is_active: bool = True


class CatalogueLookup(ABC):
    @abstractmethod
    def get_product(self, product_id: str) -> ProductSnapshot | None:
        """Return the product snapshot, or None when the catalogue has no such product."""
        ...
