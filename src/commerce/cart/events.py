"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the cart, or its quantity was increased."""

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity_added = Integer(required=True)
    new_quantity = Integer(required=True)


@commerce.event(part_of="ShoppingCart")
class CartItemQuantityUpdated:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@commerce.event(part_of="ShoppingCart")
class CartItemRemoved:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)


@commerce.event(part_of="ShoppingCart")
class CartCleared:
    cart_id = Identifier(required=True)
    items_removed = Integer(required=True)


@commerce.event(part_of="ShoppingCart")
class GuestCartTransferred:
    """Lines from an anonymous session cart were merged into a user's cart."""

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    source_session_id = String(required=True)
    items_merged = Integer(required=True)
    items_kept = Integer(required=True)
