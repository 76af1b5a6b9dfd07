"""Read-side views of a cart: priced summary and per-line availability."""

from dataclasses import asdict, dataclass, field

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.cart.cart import ShoppingCart
from commerce.catalogue import get_catalogue
from commerce.inventory.record import InventoryRecord
from commerce.settings import get_settings

UNAVAILABLE_PRODUCT_NAME = "Product not available"


@dataclass
class CartLineView:
    product_id: str
    product_name: str
    product_sku: str | None
    unit_price: float
    quantity: int
    line_total: float


@dataclass
class CartSummary:
    cart_id: str | None
    items: list[CartLineView] = field(default_factory=list)
    total_items: int = 0
    subtotal: float = 0.0
    estimated_tax: float = 0.0
    estimated_shipping: float = 0.0
    estimated_total: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def summarize(cart: ShoppingCart | None) -> CartSummary:
    """Price the cart with current catalogue prices and the shared pricing policy."""
    if cart is None:
        return CartSummary(cart_id=None)

    catalogue = get_catalogue()
    settings = get_settings()

    views = []
    for line in cart.items:
        product = catalogue.get_product(str(line.product_id))
        if product is None:
            name, sku, price = UNAVAILABLE_PRODUCT_NAME, None, 0.0
        else:
            name, sku, price = product.name, product.sku, product.price
        views.append(
            CartLineView(
                product_id=str(line.product_id),
                product_name=name,
                product_sku=sku,
                unit_price=price,
                quantity=line.quantity,
                line_total=round(price * line.quantity, 2),
            )
        )

    subtotal = round(sum(view.line_total for view in views), 2)
    tax = settings.tax_for(subtotal)
    shipping = settings.shipping_for(subtotal) if views else 0.0

    return CartSummary(
        cart_id=str(cart.id),
        items=views,
        total_items=sum(view.quantity for view in views),
        subtotal=subtotal,
        estimated_tax=tax,
        estimated_shipping=shipping,
        estimated_total=round(subtotal + tax + shipping, 2),
    )


def check_lines(cart: ShoppingCart | None) -> list[dict]:
    """Report, per line, whether the ledger can still cover the requested quantity."""
    if cart is None:
        return []

    catalogue = get_catalogue()
    repo = current_domain.repository_for(InventoryRecord)

    report = []
    for line in cart.items:
        product = catalogue.get_product(str(line.product_id))
        try:
            available = repo.get(str(line.product_id)).quantity_available
        except ObjectNotFoundError:
            available = 0
        if product is None or not product.is_active:
            available = 0

        if available == 0:
            status, note = "unavailable", "(No longer available)"
        elif line.quantity > available:
            status, note = "limited", f"(Limited stock: {available} available)"
        else:
            status, note = "available", None

        report.append(
            {
                "product_id": str(line.product_id),
                "requested_quantity": line.quantity,
                "available_quantity": available,
                "status": status,
                "note": note,
            }
        )
    return report
