"""Repository for the ShoppingCart aggregate."""

from commerce.cart.cart import ShoppingCart
from commerce.domain import commerce


@commerce.repository(part_of=ShoppingCart)
class ShoppingCartRepository:
    def for_owner(self, user_id=None, session_id=None) -> ShoppingCart | None:
        """Find the cart of a user, or of an anonymous session when no user is given."""
        if user_id:
            carts = self._dao.query.filter(user_id=str(user_id)).all().items
        elif session_id:
            carts = self._dao.query.filter(session_id=session_id).all().items
        else:
            return None

        if not carts:
            return None
        # Reload through the repository so the cart's lines come with it
        return self.get(carts[0].id)
