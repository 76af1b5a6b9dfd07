"""In-memory catalogue adapter for development and testing."""

from commerce.catalogue.port import CatalogueLookup, ProductSnapshot


class FakeCatalogue(CatalogueLookup):
    def __init__(self) -> None:
        self.products: dict[str, ProductSnapshot] = {}
        self.lookups: list[str] = []

    def add_product(self, product_id, sku=None, name=None, price=0.0, is_active=True) -> ProductSnapshot:
        product = ProductSnapshot(
            product_id=str(product_id),
            sku=sku or f"SKU-{product_id}",
            name=name or f"Product {product_id}",
            price=float(price),
            is_active=is_active,
        )
        self.products[product.product_id] = product
        return product

    def deactivate(self, product_id) -> None:
        product = self.products[str(product_id)]
        self.add_product(product.product_id, product.sku, product.name, product.price, is_active=False)

    def get_product(self, product_id: str) -> ProductSnapshot | None:
        self.lookups.append(str(product_id))
        return self.products.get(str(product_id))

    def reset(self) -> None:
        self.products.clear()
        self.lookups.clear()
