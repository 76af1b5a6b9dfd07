"""Cart line management — commands and handler.

The owner is given as either ``user_id`` or ``session_id``. Every quantity
change is validated against the ledger for the full resulting quantity,
not for the delta.
"""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.cart.cart import ShoppingCart
from commerce.domain import commerce
from commerce.exceptions import NotFound
from commerce.inventory.availability import validate_availability


@commerce.command(part_of="ShoppingCart")
class AddCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@commerce.command(part_of="ShoppingCart")
class UpdateCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@commerce.command(part_of="ShoppingCart")
class RemoveCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)


@commerce.command(part_of="ShoppingCart")
class ClearCart:
    user_id = Identifier()
    session_id = String(max_length=255)


def _existing_cart(repo, command) -> ShoppingCart:
    cart = repo.for_owner(user_id=command.user_id, session_id=command.session_id)
    if cart is None:
        raise NotFound("No cart exists for this shopper")
    return cart


@commerce.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddCartItem)
    def add_cart_item(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.for_owner(user_id=command.user_id, session_id=command.session_id)
        if cart is None:
            cart = ShoppingCart.create(user_id=command.user_id, session_id=command.session_id)

        validate_availability(command.product_id, cart.quantity_of(command.product_id) + command.quantity)
        cart.add_item(product_id=command.product_id, quantity=command.quantity)
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = _existing_cart(repo, command)
        if cart.line_for(command.product_id) is None:
            raise NotFound(f"Product {command.product_id} is not in the cart")

        validate_availability(command.product_id, command.quantity)
        cart.update_item_quantity(product_id=command.product_id, quantity=command.quantity)
        repo.add(cart)
        return str(cart.id)

    @handle(RemoveCartItem)
    def remove_cart_item(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = _existing_cart(repo, command)
        cart.remove_item(product_id=command.product_id)
        repo.add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.for_owner(user_id=command.user_id, session_id=command.session_id)
        if cart is None:
            return None
        cart.clear()
        repo.add(cart)
        return str(cart.id)
