"""CartService — cart operations serialized per owner.

Owners are keyed as ``user:<id>`` or ``session:<id>``. After a user's cart
changes, the new summary is pushed to that user's live connections.
"""

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from commerce.cart.cart import ShoppingCart
from commerce.cart.items import AddCartItem, ClearCart, RemoveCartItem, UpdateCartItem
from commerce.cart.summary import CartSummary, check_lines, summarize
from commerce.cart.transfer import TransferGuestCart
from commerce.utils.locking import cart_locks
from notifications.producers import notify_cart_update


def owner_key(user_id=None, session_id=None) -> str:
    if bool(user_id) == bool(session_id):
        raise ValidationError({"owner": ["Provide either a user id or a session id"]})
    return f"user:{user_id}" if user_id else f"session:{session_id}"


class CartService:
    def _run(self, command, user_id=None, session_id=None):
        with cart_locks.hold(owner_key(user_id, session_id)):
            result = current_domain.process(command, asynchronous=False)
        if user_id:
            notify_cart_update(user_id, self.summary(user_id=user_id).to_dict(), command.__class__.__name__)
        return result

    def add(self, product_id, quantity, user_id=None, session_id=None):
        return self._run(
            AddCartItem(user_id=user_id, session_id=session_id, product_id=str(product_id), quantity=quantity),
            user_id,
            session_id,
        )

    def update(self, product_id, quantity, user_id=None, session_id=None):
        return self._run(
            UpdateCartItem(user_id=user_id, session_id=session_id, product_id=str(product_id), quantity=quantity),
            user_id,
            session_id,
        )

    def remove(self, product_id, user_id=None, session_id=None):
        return self._run(
            RemoveCartItem(user_id=user_id, session_id=session_id, product_id=str(product_id)),
            user_id,
            session_id,
        )

    def clear(self, user_id=None, session_id=None):
        return self._run(ClearCart(user_id=user_id, session_id=session_id), user_id, session_id)

    def transfer(self, session_id, user_id):
        """Merge the anonymous session's cart into the user's cart."""
        with cart_locks.hold(owner_key(session_id=session_id), owner_key(user_id=user_id)):
            result = current_domain.process(
                TransferGuestCart(session_id=session_id, user_id=user_id),
                asynchronous=False,
            )
        if result is not None:
            notify_cart_update(user_id, self.summary(user_id=user_id).to_dict(), "TransferGuestCart")
        return result

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get(self, user_id=None, session_id=None) -> ShoppingCart | None:
        owner_key(user_id, session_id)
        return current_domain.repository_for(ShoppingCart).for_owner(user_id=user_id, session_id=session_id)

    def summary(self, user_id=None, session_id=None) -> CartSummary:
        return summarize(self.get(user_id=user_id, session_id=session_id))

    def item_count(self, user_id=None, session_id=None) -> int:
        cart = self.get(user_id=user_id, session_id=session_id)
        return cart.item_count if cart else 0

    def validate(self, user_id=None, session_id=None) -> list[dict]:
        return check_lines(self.get(user_id=user_id, session_id=session_id))


cart_service = CartService()
